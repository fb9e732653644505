"""
Settings for the Task Manager Backend.

Values come from the environment; a local .env file is loaded first when present.
"""

import os

from dotenv import load_dotenv

load_dotenv(override=False)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "task_manager")
DB_TIMEOUT_MS = int(os.getenv("DB_TIMEOUT_MS", "5000"))

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGORITHM = "HS256"
TOKEN_EXPIRE_DAYS = 7
ADMIN_INVITE_TOKEN = os.getenv("ADMIN_INVITE_TOKEN")

# HTTP
API_PREFIX = os.getenv("API_PREFIX", "/api")
CLIENT_URL = os.getenv("CLIENT_URL", "*")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
PORT = int(os.getenv("PORT", "8000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
