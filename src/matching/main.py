"""
Member Matcher service: FastAPI app.
Runs on port 5002.

Start with:
    uvicorn src.matching.main:app --port 5002 --reload

Requires STORE_URL and STORE_SERVICE_KEY; the app refuses to start without them.
"""
import logging

from src import config
from src.matching.api import create_app

logging.basicConfig(level=config.LOG_LEVEL)

app = create_app()
