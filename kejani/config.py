"""Environment driven settings for the Kejani client."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]

load_dotenv(dotenv_path=ROOT_DIR / ".env", override=False)

API_BASE_URL = os.getenv("KEJANI_API_BASE_URL", "https://comradekejani-k015.onrender.com").rstrip("/")
API_PREFIX = "/api/v1"
HTTP_TIMEOUT = float(os.getenv("KEJANI_HTTP_TIMEOUT", "15"))

STORAGE_DIR = os.getenv("KEJANI_STORAGE_DIR", os.path.join(os.path.expanduser("~"), ".kejani", "storage"))
AUTH_TOKEN_KEY = "authToken"

TOAST_DURATION = float(os.getenv("KEJANI_TOAST_DURATION", "5.0"))
COMPARE_LIMIT = int(os.getenv("KEJANI_COMPARE_LIMIT", "3"))


__all__ = [
    "API_BASE_URL",
    "API_PREFIX",
    "HTTP_TIMEOUT",
    "STORAGE_DIR",
    "AUTH_TOKEN_KEY",
    "TOAST_DURATION",
    "COMPARE_LIMIT",
]
