# catalog_api/store.py

import contextlib
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import List
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from catalog_api.models import Product
from catalog_api.logger import get_logger
import catalog_api.exceptions as ex

log = get_logger(__name__)

catalog_adapter = TypeAdapter(List[Product])


class CatalogStore:
  """
  Owns the catalog JSON file. Every call to load() reads the whole file and
  every call to save() rewrites it completely.

  Args:
    path (str): Location of the catalog file (JSON array of products)
  """

  def __init__(self, path: str):
    self.path = path
    # Held by the service around load -> compute -> save
    self.lock = threading.RLock()
    self._corrupt = False


  def ensure_storage(self):
    """Creates the directory holding the catalog file"""
    directory = os.path.dirname(os.path.abspath(self.path))
    os.makedirs(directory, exist_ok=True)
    log.info(f"Catalog storage ready at '{self.path}'")


  def load(self, track: bool = False) -> List[Product]:
    """
    Read the full catalog.

    Missing, unreadable or malformed files give an empty catalog. With track
    set (callers holding self.lock before a save), a malformed file is
    remembered so that the next save() moves it aside first.

    Args:
      track (bool): Record whether the file was malformed

    Returns:
      List[Product]: Products in file order
    """
    try:
      with open(self.path, "r", encoding="utf-8") as f:
        raw = f.read()
    except FileNotFoundError:
      log.warning(f"Catalog file '{self.path}' not found, using empty catalog")
      if track:
        self._corrupt = False
      return []
    except (OSError, UnicodeDecodeError) as e:
      log.error(f"Catalog file '{self.path}' could not be read, using empty catalog: {e}")
      return []

    if not raw.strip():
      log.warning(f"Catalog file '{self.path}' is empty")
      if track:
        self._corrupt = False
      return []

    try:
      products = catalog_adapter.validate_json(raw)
    except PydanticValidationError as e:
      log.error(f"Catalog file '{self.path}' is malformed, using empty catalog: {e}")
      if track:
        self._corrupt = True
      return []

    if track:
      self._corrupt = False
    log.debug(f"Loaded {len(products)} products from '{self.path}'")
    return products


  def save(self, products: List[Product]):
    """
    Replace the catalog file with the given products.

    The JSON is written to a temporary file next to the catalog and then
    renamed over it, so readers see either the old or the new catalog.

    Raises:
      StorageWriteError: The file could not be written
    """
    payload = catalog_adapter.dump_json(products, by_alias=True, indent=2)
    directory = os.path.dirname(os.path.abspath(self.path))
    tmp_path = None

    try:
      os.makedirs(directory, exist_ok=True)

      if self._corrupt and os.path.exists(self.path):
        backup_path = f"{self.path}.corrupt-{datetime.now(timezone.utc):%Y%m%d%H%M%S}"
        os.replace(self.path, backup_path)
        self._corrupt = False
        log.warning(f"Moved malformed catalog file to '{backup_path}'")

      fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(self.path)}.", suffix=".tmp")
      with os.fdopen(fd, "wb") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
      os.chmod(tmp_path, 0o644)
      os.replace(tmp_path, self.path)
    except OSError as e:
      log.error(f"Error writing catalog file '{self.path}': {e}")
      if tmp_path:
        with contextlib.suppress(OSError):
          os.remove(tmp_path)
      raise ex.StorageWriteError(self.path, str(e)) from e

    log.info(f"Saved {len(products)} products to '{self.path}'")
