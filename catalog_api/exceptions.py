# catalog_api/exceptions.py

class CatalogException(Exception):
  """All catalog errors"""
  def __init__(self, message: str = None):
    self.message = message or self.__doc__
    super().__init__(self.message)

class NotFoundError(CatalogException):
  """Product or review not found"""
  pass

class ValidationError(CatalogException):
  """Missing or invalid product/review fields"""
  pass

class StorageWriteError(CatalogException):
  """Catalog file could not be written"""
  def __init__(self, path: str, reason: str = None):
    self.path = path
    super().__init__(f"Failed to write catalog file '{path}': {reason}" if reason else f"Failed to write catalog file '{path}'")
