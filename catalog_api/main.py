# catalog_api/main.py

from fastapi import FastAPI, APIRouter, Query, HTTPException, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional

from catalog_api import config
from catalog_api.models import (ProductCreate, ProductPatch, ReviewRequest, ProductPageResponse,
                                ProductResponse, ProductsResponse, ReviewsResponse, MessageResponse)
from catalog_api.store import CatalogStore
from catalog_api.catalog_service import CatalogService
from catalog_api.identity import CurrentUser, get_current_user
import catalog_api.exceptions as ex

from catalog_api.logger import configure_logging, get_logger
configure_logging()

log = get_logger(__name__)
log.info("Catalog API is starting...")

catalog_store = CatalogStore(config.CATALOG_FILE)
catalog_service = CatalogService(catalog_store)


def get_catalog_service() -> CatalogService:
  return catalog_service


@asynccontextmanager
async def lifespan(app: FastAPI):
  # Application startup
  catalog_store.ensure_storage()
  yield


app = FastAPI(title="Product Catalog API",
              lifespan=lifespan,
              description="Product catalog with category filtering, pagination and per-product reviews, stored in a single JSON file.",
              version="1.0.0")

router = APIRouter(prefix=config.API_PREFIX)


def to_http_exception(e: ex.CatalogException, context: str) -> HTTPException:
  """Map catalog errors to HTTP status codes (404, 400, 500)"""
  if isinstance(e, ex.NotFoundError):
    log.warning(f"[API] NotFound during {context}: {e.message}")
    return HTTPException(status_code=404, detail=e.message)
  if isinstance(e, ex.ValidationError):
    log.warning(f"[API] ValidationError during {context}: {e.message}")
    return HTTPException(status_code=400, detail=e.message)
  log.error(f"[API] {type(e).__name__} during {context}: {e.message}")
  return HTTPException(status_code=500, detail=e.message)


### Public routes
@router.get("/products", response_model=ProductPageResponse)
def get_all_products(
  category: Optional[str] = Query(None, description="Category filter (case-insensitive)"),
  page: Optional[int] = Query(None, description="Page number, starts at 1"),
  limit: Optional[int] = Query(None, description="Products per page"),
  service: CatalogService = Depends(get_catalog_service)
  ):
  """
  Paginated product listing with optional category filter.
  productsCount is the size of the whole catalog, filteredProductsCount the number of matches.
  """
  log.info(f"/products called with category={category!r}, page={page}, limit={limit}")
  result = service.list_products(category=category, page=page or 1, page_size=limit)
  return ProductPageResponse(**dict(result))


@router.get("/products/all", response_model=ProductsResponse)
def get_products(service: CatalogService = Depends(get_catalog_service)):
  """All products without pagination, used by product sliders"""
  return ProductsResponse(products=service.list_all_products())


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product_details(product_id: str, service: CatalogService = Depends(get_catalog_service)):
  try:
    product = service.get_product(product_id)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"get product '{product_id}'") from e
  return ProductResponse(product=product)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreate, service: CatalogService = Depends(get_catalog_service)):
  try:
    product = service.create_product(payload)
  except ex.CatalogException as e:
    raise to_http_exception(e, "create product") from e
  return ProductResponse(product=product)


@router.put("/review", response_model=MessageResponse)
def create_product_review(
  payload: ReviewRequest,
  user: CurrentUser = Depends(get_current_user),
  service: CatalogService = Depends(get_catalog_service)
  ):
  """Create the user's review for a product or replace the previous one"""
  try:
    service.upsert_review(payload.product_id, user.id, user.name, payload.rating, payload.comment)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"review of product '{payload.product_id}'") from e
  return MessageResponse(message="Review added successfully")


### Admin routes
@router.get("/admin/products", response_model=ProductsResponse)
def get_admin_products(service: CatalogService = Depends(get_catalog_service)):
  return ProductsResponse(products=service.list_all_products())


@router.post("/admin/product/new", response_model=ProductResponse, status_code=201)
def create_admin_product(payload: ProductCreate, service: CatalogService = Depends(get_catalog_service)):
  try:
    product = service.create_product(payload)
  except ex.CatalogException as e:
    raise to_http_exception(e, "create product (admin)") from e
  return ProductResponse(product=product)


@router.put("/admin/product/{product_id}", response_model=ProductResponse)
def update_product(product_id: str, patch: ProductPatch, service: CatalogService = Depends(get_catalog_service)):
  try:
    product = service.update_product(product_id, patch)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"update product '{product_id}'") from e
  return ProductResponse(product=product)


@router.delete("/admin/product/{product_id}", response_model=MessageResponse)
def delete_product(product_id: str, service: CatalogService = Depends(get_catalog_service)):
  try:
    service.delete_product(product_id)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"delete product '{product_id}'") from e
  return MessageResponse(message="Product deleted successfully")


@router.get("/admin/reviews", response_model=ReviewsResponse)
def get_product_reviews(
  product_id: str = Query(..., alias="id", description="Product id"),
  service: CatalogService = Depends(get_catalog_service)
  ):
  try:
    reviews = service.list_reviews(product_id)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"list reviews of product '{product_id}'") from e
  return ReviewsResponse(reviews=reviews)


@router.delete("/admin/reviews", response_model=MessageResponse)
def delete_review(
  product_id: str = Query(..., alias="productId", description="Product id"),
  review_id: str = Query(..., alias="id", description="Review id"),
  service: CatalogService = Depends(get_catalog_service)
  ):
  try:
    service.delete_review(product_id, review_id)
  except ex.CatalogException as e:
    raise to_http_exception(e, f"delete review '{review_id}' of product '{product_id}'") from e
  return MessageResponse(message="Review deleted successfully")


app.include_router(router)


@app.get("/")
def root():
  return {"message": f"Product Catalog API - endpoints under {config.API_PREFIX}: /products, /products/all, /products/{{id}}, /review, /admin/..."}


@app.get("/health")
def healthcheck():
  return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
  log.warning(f"Request validation failed for {request.method} {request.url.path}: {exc.errors()}")
  return JSONResponse(
    status_code=400,
    content={"success": False, "detail": jsonable_encoder(exc.errors())},
  )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
  log.error(f"Unhandled exception: {exc}", exc_info=True)
  return JSONResponse(
    status_code=500,
    content={"detail": "Internal Server Error"},
  )
