# catalog_api/config.py

import os

# Environment: production, development, testing
ENV = os.getenv("APP_ENV", "development")

# Catalog JSON file (single source of truth for all products)
CATALOG_FILE = os.getenv("CATALOG_FILE", os.path.join("data", "products.json"))

# Pagination
DEFAULT_PAGE_SIZE = int(os.getenv("CATALOG_PAGE_SIZE", "12"))

# Server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "4001"))
API_PREFIX = "/api/v1"

# Review identity used when no user header is sent
ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_USER_NAME = "Anonymous"
