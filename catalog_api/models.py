# catalog_api/models.py

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime, timezone
import math


def utc_now() -> datetime:
  return datetime.now(timezone.utc)


class CamelModel(BaseModel):
  """Snake_case attributes in Python, camelCase names in JSON"""
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


### Persisted records
class Review(CamelModel):
  id: str
  user: str
  name: str
  # None when a stored rating is null or not a number
  rating: Optional[float] = None
  comment: Optional[str] = None
  created_at: Optional[datetime] = Field(default_factory=utc_now)

  @field_validator("rating", mode="before")
  @classmethod
  def non_numeric_rating_to_none(cls, v):
    try:
      rating = float(v)
    except (TypeError, ValueError):
      return None
    return rating if math.isfinite(rating) else None


class Product(CamelModel):
  # Hand-edited catalogs may carry extra fields, keep them on rewrite
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

  id: str
  title: Optional[str] = None
  description: Optional[str] = None
  category: Optional[str] = None
  image_url: Optional[str] = None
  price: Optional[float] = None
  created_at: Optional[datetime] = None
  updated_at: Optional[datetime] = None
  reviews: List[Review] = Field(default_factory=list)
  ratings: float = 0
  num_of_reviews: int = 0

  @field_validator("reviews", mode="before")
  @classmethod
  def missing_reviews_to_empty(cls, v):
    return [] if v is None else v

  # Derived from reviews, rebuilt on the next review change
  @field_validator("ratings", "num_of_reviews", mode="before")
  @classmethod
  def missing_aggregate_to_zero(cls, v):
    return 0 if v is None else v


### Request bodies
class ProductCreate(CamelModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

  title: str = Field(..., min_length=1, description="Product title")
  price: float = Field(..., ge=0, description="Product price")
  description: str = Field(..., min_length=1, description="Product description")
  category: str = Field(..., min_length=1, description="Product category")
  image_url: str = Field(..., pattern=r"^https?://\S+$", description="Product image URL")


class ProductPatch(CamelModel):
  """
  Partial product update. Identity (id), timestamps and review aggregates
  are not part of this model, so a patch can never change them.
  """
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True, extra="ignore")

  title: Optional[str] = Field(None, min_length=1)
  price: Optional[float] = Field(None, ge=0)
  description: Optional[str] = Field(None, min_length=1)
  category: Optional[str] = Field(None, min_length=1)
  image_url: Optional[str] = Field(None, pattern=r"^https?://\S+$")


class ReviewRequest(CamelModel):
  product_id: str = Field(..., min_length=1)
  rating: float = Field(..., ge=1, le=5)
  comment: Optional[str] = None


### Results and response envelopes
class ProductPage(CamelModel):
  products: List[Product]
  products_count: int
  result_per_page: int
  filtered_products_count: int
  current_page: int
  total_pages: int


class ProductPageResponse(ProductPage):
  success: bool = True


class ProductResponse(CamelModel):
  success: bool = True
  product: Product


class ProductsResponse(CamelModel):
  success: bool = True
  products: List[Product]


class ReviewsResponse(CamelModel):
  success: bool = True
  reviews: List[Review]


class MessageResponse(CamelModel):
  success: bool = True
  message: str
