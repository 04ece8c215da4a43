# tests/test_catalog_service.py

import json
import math
import os
import pytest
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from catalog_api.models import Product, ProductPatch
from catalog_api.store import CatalogStore
from catalog_api.catalog_service import CatalogService, generate_id
import catalog_api.exceptions as ex
from catalog_api.logger import configure_logging
configure_logging()

test_log = logging.getLogger("tests")

SEEDED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)

NEW_PRODUCT = {
  "title": "Test Wireless Headphones",
  "price": 89.99,
  "description": "High-quality wireless headphones with noise cancellation",
  "category": "Electronics",
  "imageUrl": "https://example.com/headphones.jpg"
}


@pytest.fixture
def store(tmp_path):
  return CatalogStore(str(tmp_path / "products.json"))


@pytest.fixture
def service(store):
  store.save([
    Product(id="1", title="Headphones", category="Electronics", price=10, created_at=SEEDED_AT, updated_at=SEEDED_AT),
    Product(id="2", title="Novel", category="Books", price=5, created_at=SEEDED_AT, updated_at=SEEDED_AT)
  ])
  return CatalogService(store)


def read_file(store):
  with open(store.path, encoding="utf-8") as f:
    return f.read()


### Listing
def test_list_products_filters_category_case_insensitive(service):
  page = service.list_products(category="books", page=1, page_size=12)

  assert [p.id for p in page.products] == ["2"]
  assert page.filtered_products_count == 1
  assert page.products_count == 2
  assert page.total_pages == 1
  assert page.current_page == 1
  assert page.result_per_page == 12
  test_log.info("test_list_products_filters_category_case_insensitive completed successfully.")


def test_list_products_category_matches_all_cases(store):
  store.save([
    Product(id=str(i), category=category)
    for i, category in enumerate(["Apparel", "APPAREL", "apparel", "Books", None])
  ])
  page = CatalogService(store).list_products(category="ApPaReL")

  assert page.filtered_products_count == 3
  assert all(p.category.lower() == "apparel" for p in page.products)


def test_list_products_pagination(store):
  store.save([Product(id=str(i), category="Books") for i in range(1, 8)])
  service = CatalogService(store)

  page = service.list_products(page=2, page_size=3)
  assert [p.id for p in page.products] == ["4", "5", "6"]
  assert page.total_pages == math.ceil(7 / 3)

  last = service.list_products(page=3, page_size=3)
  assert [p.id for p in last.products] == ["7"]

  beyond = service.list_products(page=10, page_size=3)
  assert beyond.products == []
  assert beyond.filtered_products_count == 7


def test_list_products_invalid_paging_falls_back_to_defaults(service):
  page = service.list_products(page=0, page_size=0)
  assert page.current_page == 1
  assert page.result_per_page == 12
  assert len(page.products) == 2


def test_list_products_empty_catalog(store):
  page = CatalogService(store).list_products()
  assert page.products == []
  assert page.products_count == 0
  assert page.total_pages == 0


def test_list_all_products(service):
  assert [p.id for p in service.list_all_products()] == ["1", "2"]


def test_get_product_not_found(service):
  with pytest.raises(ex.NotFoundError):
    service.get_product("missing")


### Create / update / delete
def test_create_then_get_returns_same_product(service):
  created = service.create_product(NEW_PRODUCT)

  assert created.id
  assert created.created_at == created.updated_at
  assert created.title == NEW_PRODUCT["title"]
  assert created.image_url == NEW_PRODUCT["imageUrl"]
  assert created.price == 89.99

  fetched = service.get_product(created.id)
  assert fetched.model_dump() == created.model_dump()
  assert len(service.list_all_products()) == 3


def test_create_coerces_price_to_float(service):
  fields = dict(NEW_PRODUCT, price="12.50")
  assert service.create_product(fields).price == 12.5


def test_create_accepts_zero_price(service):
  assert service.create_product(dict(NEW_PRODUCT, price=0)).price == 0.0


@pytest.mark.parametrize("field", ["title", "price", "description", "category", "imageUrl"])
def test_create_rejects_missing_field(service, store, field):
  before = read_file(store)
  fields = {k: v for k, v in NEW_PRODUCT.items() if k != field}

  with pytest.raises(ex.ValidationError) as exc_info:
    service.create_product(fields)

  assert field in exc_info.value.message
  assert read_file(store) == before


def test_create_rejects_blank_and_bad_values(service):
  with pytest.raises(ex.ValidationError):
    service.create_product(dict(NEW_PRODUCT, title="  "))
  with pytest.raises(ex.ValidationError):
    service.create_product(dict(NEW_PRODUCT, price="cheap"))
  with pytest.raises(ex.ValidationError):
    service.create_product(dict(NEW_PRODUCT, price=-1))


def test_generated_ids_are_unique():
  ids = {generate_id() for _ in range(1000)}
  assert len(ids) == 1000


def test_update_merges_and_keeps_id(service):
  updated = service.update_product("1", {"id": "other", "title": "Studio Headphones", "ratings": 5})

  assert updated.id == "1"
  assert updated.title == "Studio Headphones"
  assert updated.category == "Electronics"
  assert updated.price == 10
  assert updated.ratings == 0
  assert updated.updated_at > SEEDED_AT
  assert updated.created_at == SEEDED_AT
  assert service.get_product("1").title == "Studio Headphones"
  with pytest.raises(ex.NotFoundError):
    service.get_product("other")


def test_update_with_patch_model(service):
  updated = service.update_product("2", ProductPatch(price=7.25))
  assert updated.price == 7.25
  assert updated.title == "Novel"


def test_update_rejects_invalid_patch(service):
  with pytest.raises(ex.ValidationError):
    service.update_product("1", {"price": -3})


def test_update_not_found(service, store):
  before = read_file(store)
  with pytest.raises(ex.NotFoundError):
    service.update_product("missing", {"title": "x"})
  assert read_file(store) == before


def test_delete_product(service):
  removed = service.delete_product("1")

  assert removed.id == "1"
  assert [p.id for p in service.list_all_products()] == ["2"]


def test_delete_removes_only_first_match(store):
  # Hand-edited file with a duplicated id
  store.save([Product(id="dup", title="a"), Product(id="dup", title="b")])
  CatalogService(store).delete_product("dup")

  assert [p.title for p in store.load()] == ["b"]


def test_delete_missing_product_leaves_catalog_unchanged(service, store):
  before = [p.model_dump() for p in store.load()]
  with pytest.raises(ex.NotFoundError):
    service.delete_product("missing")
  assert [p.model_dump() for p in store.load()] == before


### Reviews
def test_two_users_average_rating(service):
  service.upsert_review("1", "u1", "Alice", 4, "Good")
  product = service.upsert_review("1", "u2", "Bob", 5, "Great")

  assert product.ratings == 4.5
  assert product.num_of_reviews == 2
  stored = service.get_product("1")
  assert stored.ratings == 4.5
  assert [r.name for r in stored.reviews] == ["Alice", "Bob"]


def test_same_user_review_is_replaced(service):
  service.upsert_review("1", "u1", "Alice", 2, "Meh")
  service.upsert_review("1", "u2", "Bob", 4)
  service.upsert_review("1", "u1", "Alice", 5, "Changed my mind")

  product = service.get_product("1")
  alice = [r for r in product.reviews if r.user == "u1"]
  assert len(alice) == 1
  assert alice[0].rating == 5
  assert alice[0].comment == "Changed my mind"
  # Replaced in place
  assert [r.user for r in product.reviews] == ["u1", "u2"]
  assert product.num_of_reviews == 2
  assert product.ratings == 4.5


def test_single_user_second_rating_wins(service):
  service.upsert_review("2", "u1", "Alice", 1)
  product = service.upsert_review("2", "u1", "Alice", 3)

  assert len(product.reviews) == 1
  assert product.ratings == 3


def test_review_rating_coerced_to_number(service):
  product = service.upsert_review("1", "u1", "Alice", "4")
  assert product.reviews[0].rating == 4.0

  with pytest.raises(ex.ValidationError):
    service.upsert_review("1", "u1", "Alice", "four")


def test_anonymous_review(service):
  product = service.upsert_review("1", None, None, 3)
  assert product.reviews[0].user == "anonymous"
  assert product.reviews[0].name == "Anonymous"


def test_review_on_missing_product(service, store):
  before = read_file(store)
  with pytest.raises(ex.NotFoundError):
    service.upsert_review("missing", "u1", "Alice", 4)
  assert read_file(store) == before


def test_list_reviews(service):
  assert service.list_reviews("1") == []
  service.upsert_review("1", "u1", "Alice", 4)
  assert [r.user for r in service.list_reviews("1")] == ["u1"]
  with pytest.raises(ex.NotFoundError):
    service.list_reviews("missing")


def test_delete_review_recomputes_aggregates(service):
  first = service.upsert_review("1", "u1", "Alice", 4).reviews[0]
  service.upsert_review("1", "u2", "Bob", 2)

  product = service.delete_review("1", first.id)
  assert product.num_of_reviews == 1
  assert product.ratings == 2


def test_delete_last_review_resets_aggregates(service):
  review = service.upsert_review("1", "u1", "Alice", 5).reviews[0]

  product = service.delete_review("1", review.id)

  assert product.reviews == []
  assert product.ratings == 0
  assert product.num_of_reviews == 0
  assert service.get_product("1").num_of_reviews == 0


def test_delete_missing_review_leaves_catalog_unchanged(service, store):
  service.upsert_review("1", "u1", "Alice", 5)
  before = [p.model_dump() for p in store.load()]

  with pytest.raises(ex.NotFoundError):
    service.delete_review("1", "no-such-review")
  with pytest.raises(ex.NotFoundError):
    service.delete_review("missing", "no-such-review")

  assert [p.model_dump() for p in store.load()] == before


def test_recompute_ignores_stale_stored_aggregates(store):
  store.save([Product(id="1", ratings=3.7, num_of_reviews=9)])
  product = CatalogService(store).upsert_review("1", "u1", "Alice", 5)

  assert product.ratings == 5
  assert product.num_of_reviews == 1


### Concurrency and storage failures
def test_concurrent_reviews_are_not_lost(service):
  users = [f"user-{i}" for i in range(25)]

  with ThreadPoolExecutor(max_workers=8) as executor:
    list(executor.map(lambda u: service.upsert_review("1", u, u, 4), users))

  product = service.get_product("1")
  assert product.num_of_reviews == len(users)
  assert sorted(r.user for r in product.reviews) == sorted(users)
  assert product.ratings == 4
  test_log.info("test_concurrent_reviews_are_not_lost completed successfully.")


def test_concurrent_creates_are_not_lost(service):
  with ThreadPoolExecutor(max_workers=8) as executor:
    list(executor.map(lambda i: service.create_product(dict(NEW_PRODUCT, title=f"Item {i}")), range(20)))

  assert len(service.list_all_products()) == 22


def test_storage_failure_propagates_and_keeps_file(service, store, monkeypatch):
  before = read_file(store)

  def failing_replace(src, dst):
    raise PermissionError(13, "Permission denied")

  monkeypatch.setattr(os, "replace", failing_replace)

  with pytest.raises(ex.StorageWriteError):
    service.upsert_review("1", "u1", "Alice", 4)

  monkeypatch.undo()
  assert read_file(store) == before
  assert json.loads(before)[0]["numOfReviews"] == 0


def test_empty_storage_degrades_to_empty_catalog(tmp_path):
  store = CatalogStore(str(tmp_path / "missing" / "products.json"))
  service = CatalogService(store)

  assert service.list_all_products() == []
  created = service.create_product(NEW_PRODUCT)
  assert [p.id for p in store.load()] == [created.id]


### Timestamps
def test_review_changes_refresh_updated_at(service):
  added = service.upsert_review("1", "u1", "Alice", 4)
  assert added.updated_at > SEEDED_AT
  assert added.created_at == SEEDED_AT
  assert service.get_product("1").updated_at == added.updated_at

  replaced = service.upsert_review("1", "u1", "Alice", 2)
  assert replaced.updated_at >= added.updated_at
  assert replaced.created_at == SEEDED_AT

  removed = service.delete_review("1", replaced.reviews[0].id)
  assert removed.updated_at >= replaced.updated_at
  assert removed.created_at == SEEDED_AT
  assert service.get_product("1").updated_at == removed.updated_at

  # Untouched product keeps its timestamps
  other = service.get_product("2")
  assert other.updated_at == SEEDED_AT
  assert other.created_at == SEEDED_AT


### Hand-edited catalogs with null fields
def test_null_reviews_do_not_drop_catalog(store):
  with open(store.path, "w", encoding="utf-8") as f:
    json.dump([
      {"id": "1", "title": "Lamp", "category": "Home", "price": 12, "reviews": None},
      {"id": "2", "title": "Desk", "category": "Home", "price": 90}
    ], f)
  service = CatalogService(store)

  created = service.create_product(NEW_PRODUCT)

  assert [p.id for p in store.load()] == ["1", "2", created.id]
  product = service.upsert_review("1", "u1", "Alice", 5)
  assert product.num_of_reviews == 1
  assert product.ratings == 5


def test_review_without_numeric_rating_counts_as_zero(store):
  with open(store.path, "w", encoding="utf-8") as f:
    json.dump([{"id": "1", "reviews": [
      {"id": "r1", "user": "u1", "name": "Alice", "rating": None}
    ], "ratings": None, "numOfReviews": 1}], f)

  product = CatalogService(store).upsert_review("1", "u2", "Bob", 4)

  assert [r.id for r in product.reviews][0] == "r1"
  assert product.num_of_reviews == 2
  assert product.ratings == 2


def test_malformed_catalog_is_backed_up_by_next_mutation(store, tmp_path):
  with open(store.path, "w", encoding="utf-8") as f:
    f.write("[{broken")
  service = CatalogService(store)

  # Reads alone never move the file
  assert service.list_all_products() == []
  assert [name for name in os.listdir(tmp_path) if ".corrupt-" in name] == []

  created = service.create_product(NEW_PRODUCT)

  assert [p.id for p in store.load()] == [created.id]
  assert len([name for name in os.listdir(tmp_path) if ".corrupt-" in name]) == 1
