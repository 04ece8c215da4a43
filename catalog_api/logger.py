# catalog_api/logger.py

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
import json
from datetime import datetime, timezone


# JSON line formatter
class JsonFormatter(logging.Formatter):
  def format(self, record):
    log_record = {
      "timestamp": datetime.now(timezone.utc).isoformat(),
      "level": record.levelname,
      "logger": record.name,
      "message": record.getMessage(),
      "file": record.pathname,
      "line": record.lineno,
      "function": record.funcName
    }

    if record.exc_info:
      log_record["exception"] = self.formatException(record.exc_info)

    return json.dumps(log_record)


json_formatter = JsonFormatter()

def configure_logging():
  """
  Configure the root logger for the API process.

  Environment is read at call time, so tests can switch APP_ENV to 'testing'
  before calling this function.
  """
  env = os.getenv("APP_ENV", "development")
  log_dir = os.getenv("LOG_DIR", "logs")

  app_log_file = os.path.join(log_dir, "app.log")
  test_log_file = os.path.join(log_dir, "test.log")

  os.makedirs(log_dir, exist_ok=True)

  # Root logger
  logger = logging.getLogger()
  if env in ("testing", "development"):
    logger.setLevel(logging.DEBUG)
  else: # production
    logger.setLevel(logging.INFO)

  # Clear previous handler
  if logger.hasHandlers():
    logger.handlers.clear()

  # --- Console (stdout) logger, errors only ---
  console_handler = logging.StreamHandler(sys.stdout)
  console_handler.setFormatter(json_formatter)
  console_handler.setLevel(logging.ERROR)
  logger.addHandler(console_handler)

  # test.log while testing, app.log otherwise
  if env == "testing":
    file_handler = RotatingFileHandler(test_log_file, maxBytes=1*1024*1024, backupCount=1, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
  else:
    file_handler = RotatingFileHandler(app_log_file, maxBytes=5*1024*1024, backupCount=3, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
  file_handler.setFormatter(json_formatter)
  logger.addHandler(file_handler)


def get_logger(name):
  """
  Returns a logger object with specific name.
  Before call this function configure_logging() must be called.
  """
  return logging.getLogger(name)
