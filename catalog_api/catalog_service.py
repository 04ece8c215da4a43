# catalog_api/catalog_service.py

import math
import secrets
import time
from typing import Any, List, Mapping, Optional, Union
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from catalog_api import config
from catalog_api.models import Product, ProductCreate, ProductPatch, ProductPage, Review, utc_now
from catalog_api.store import CatalogStore
from catalog_api.logger import get_logger
import catalog_api.exceptions as ex

log = get_logger(__name__)

REQUIRED_PRODUCT_FIELDS = ("title", "price", "description", "category", "image_url")


def generate_id() -> str:
  """Millisecond timestamp (hex) followed by a random suffix"""
  return f"{int(time.time() * 1000):x}{secrets.token_hex(6)}"


def _find_index(products: List[Product], product_id: str) -> int:
  for index, product in enumerate(products):
    if product.id == product_id:
      return index
  return -1


def _get_field(fields: Mapping[str, Any], name: str):
  # Accept both python (image_url) and JSON (imageUrl) keys
  if name in fields:
    return fields[name]
  return fields.get(to_camel(name))


def _is_blank(value) -> bool:
  return value is None or (isinstance(value, str) and not value.strip())


def recompute_review_stats(product: Product):
  """
  Rebuild ratings and num_of_reviews from the product's current reviews.
  A review without a numeric rating counts as 0 towards the average.
  """
  count = len(product.reviews)
  product.num_of_reviews = count
  product.ratings = sum(review.rating or 0 for review in product.reviews) / count if count else 0.0


class CatalogService:
  """
  Catalog operations. Each one loads the whole catalog from the store,
  computes the new catalog in memory and, for mutations, saves it back.

  Mutations hold the store lock for the whole load -> compute -> save cycle,
  so concurrent requests are applied one after another instead of
  overwriting each other.
  """

  def __init__(self, store: CatalogStore, page_size: int = config.DEFAULT_PAGE_SIZE):
    self.store = store
    self.page_size = page_size


  ### Listing and retrieval
  def list_products(self, category: Optional[str] = None, page: int = 1, page_size: Optional[int] = None) -> ProductPage:
    """
    Filter the catalog by category (case-insensitive) and return one page.

    Args:
      category (Optional[str]): Category to keep, all products when empty
      page (int): 1-based page number, values below 1 mean page 1
      page_size (Optional[int]): Products per page, service default when missing or below 1

    Returns:
      ProductPage: Page of products plus unfiltered/filtered counts and total pages
    """
    page = page if page and page >= 1 else 1
    page_size = page_size if page_size and page_size >= 1 else self.page_size

    products = self.store.load()

    filtered = products
    if category:
      wanted = category.lower()
      filtered = [p for p in products if p.category and p.category.lower() == wanted]

    start_index = (page - 1) * page_size
    end_index = start_index + page_size

    log.info(f"Listing products category={category!r} page={page} page_size={page_size}: {len(filtered)} of {len(products)} match")

    return ProductPage(
      products=filtered[start_index:end_index],
      products_count=len(products),
      result_per_page=page_size,
      filtered_products_count=len(filtered),
      current_page=page,
      total_pages=math.ceil(len(filtered) / page_size)
    )


  def list_all_products(self) -> List[Product]:
    """Whole catalog, unfiltered and unpaginated"""
    return self.store.load()


  def get_product(self, product_id: str) -> Product:
    products = self.store.load()
    index = _find_index(products, product_id)
    if index == -1:
      log.warning(f"Product '{product_id}' not found")
      raise ex.NotFoundError(f"Product '{product_id}' not found")
    return products[index]


  ### Mutations
  def create_product(self, fields: Union[ProductCreate, Mapping[str, Any]]) -> Product:
    """
    Validate the required fields, append a new product and persist the catalog.

    Args:
      fields: ProductCreate or a mapping with title, price, description, category, imageUrl

    Returns:
      Product: The stored product with its generated id and timestamps

    Raises:
      ValidationError: A required field is missing/empty or price is not a non-negative number
    """
    if isinstance(fields, BaseModel):
      fields = fields.model_dump()

    missing = [to_camel(name) for name in REQUIRED_PRODUCT_FIELDS if _is_blank(_get_field(fields, name))]
    if missing:
      log.warning(f"Rejected product without required fields: {missing}")
      raise ex.ValidationError(f"Missing required fields: {', '.join(missing)}")

    try:
      price = float(_get_field(fields, "price"))
    except (TypeError, ValueError):
      raise ex.ValidationError("Price must be a number") from None
    if not math.isfinite(price) or price < 0:
      raise ex.ValidationError("Price must be a non-negative number")

    with self.store.lock:
      products = self.store.load(track=True)

      product_id = generate_id()
      while _find_index(products, product_id) != -1:
        product_id = generate_id()

      now = utc_now()
      product = Product(
        id=product_id,
        title=_get_field(fields, "title"),
        price=price,
        description=_get_field(fields, "description"),
        category=_get_field(fields, "category"),
        image_url=_get_field(fields, "image_url"),
        created_at=now,
        updated_at=now
      )

      products.append(product)
      self.store.save(products)

    log.info(f"Created product '{product.id}' ({product.title})")
    return product


  def update_product(self, product_id: str, patch: Union[ProductPatch, Mapping[str, Any]]) -> Product:
    """
    Shallow-merge the fields set in patch over the stored product.
    The id always stays product_id and updated_at is refreshed.
    """
    if not isinstance(patch, ProductPatch):
      try:
        patch = ProductPatch.model_validate(patch)
      except PydanticValidationError as e:
        raise ex.ValidationError(f"Invalid product update: {e}") from e

    changes = {key: value for key, value in patch.model_dump(exclude_unset=True).items() if value is not None}

    with self.store.lock:
      products = self.store.load(track=True)
      index = _find_index(products, product_id)
      if index == -1:
        log.warning(f"Update failed, product '{product_id}' not found")
        raise ex.NotFoundError(f"Product '{product_id}' not found")

      updated = products[index].model_copy(update={**changes, "id": product_id, "updated_at": utc_now()})
      products[index] = updated
      self.store.save(products)

    log.info(f"Updated product '{product_id}' fields={sorted(changes)}")
    return updated


  def delete_product(self, product_id: str) -> Product:
    with self.store.lock:
      products = self.store.load(track=True)
      index = _find_index(products, product_id)
      if index == -1:
        log.warning(f"Delete failed, product '{product_id}' not found")
        raise ex.NotFoundError(f"Product '{product_id}' not found")

      removed = products.pop(index)
      self.store.save(products)

    log.info(f"Deleted product '{product_id}'")
    return removed


  ### Reviews
  def upsert_review(self, product_id: str, user_id: Optional[str], user_name: Optional[str], rating, comment: Optional[str] = None) -> Product:
    """
    Add the user's review, or replace it when the user already reviewed the product.
    ratings and num_of_reviews are recomputed from the resulting review list.

    Args:
      product_id (str): Reviewed product
      user_id (Optional[str]): Reviewing user, anonymous when empty
      user_name (Optional[str]): Display name stored with the review
      rating: Numeric rating, stored as float
      comment (Optional[str]): Review text

    Returns:
      Product: The product with updated reviews and aggregates
    """
    try:
      rating = float(rating)
    except (TypeError, ValueError):
      raise ex.ValidationError("Rating must be a number") from None
    if not math.isfinite(rating):
      raise ex.ValidationError("Rating must be a number")

    if not user_id:
      user_id = config.ANONYMOUS_USER_ID
      user_name = config.ANONYMOUS_USER_NAME
    user_name = user_name or user_id

    with self.store.lock:
      products = self.store.load(track=True)
      index = _find_index(products, product_id)
      if index == -1:
        log.warning(f"Review failed, product '{product_id}' not found")
        raise ex.NotFoundError(f"Product '{product_id}' not found")

      product = products[index]
      review = Review(
        id=generate_id(),
        user=user_id,
        name=user_name,
        rating=rating,
        comment=comment,
        created_at=utc_now()
      )

      existing = next((i for i, r in enumerate(product.reviews) if r.user == user_id), -1)
      if existing != -1:
        product.reviews[existing] = review
        log.info(f"Replaced review of user '{user_id}' on product '{product_id}'")
      else:
        product.reviews.append(review)
        log.info(f"Added review of user '{user_id}' on product '{product_id}'")

      recompute_review_stats(product)
      product.updated_at = utc_now()
      self.store.save(products)

    return product


  def list_reviews(self, product_id: str) -> List[Review]:
    return self.get_product(product_id).reviews


  def delete_review(self, product_id: str, review_id: str) -> Product:
    """Remove one review and recompute the product's rating aggregates"""
    with self.store.lock:
      products = self.store.load(track=True)
      index = _find_index(products, product_id)
      if index == -1:
        log.warning(f"Review delete failed, product '{product_id}' not found")
        raise ex.NotFoundError(f"Product '{product_id}' not found")

      product = products[index]
      reviews = [r for r in product.reviews if r.id != review_id]
      if len(reviews) == len(product.reviews):
        log.warning(f"Review '{review_id}' not found on product '{product_id}'")
        raise ex.NotFoundError(f"Review '{review_id}' not found")

      product.reviews = reviews
      recompute_review_stats(product)
      product.updated_at = utc_now()
      self.store.save(products)

    log.info(f"Deleted review '{review_id}' from product '{product_id}'")
    return product
