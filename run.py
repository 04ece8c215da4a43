# /run.py

import subprocess
import os
import sys

from catalog_api import config

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def run_fastapi():
  reload_flag = ["--reload"] if config.ENV == "development" else []
  subprocess.run([sys.executable, "-m", "uvicorn", "catalog_api.main:app",
                  "--host", config.API_HOST, "--port", str(config.API_PORT), *reload_flag], cwd=BASE_DIR)

if __name__ == "__main__":
  run_fastapi()
