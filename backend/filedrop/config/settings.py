import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=LOG_LEVEL)

# Database settings
# A plain sqlite:// URL is rewritten to the aiosqlite driver by the db layer.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./filedrop.sqlite")
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "30"))

# Storage settings
# One directory per token path is created under ROOT_PATH.
ROOT_PATH = os.getenv("ROOT_PATH", os.getcwd())

# Upload settings
# Allowance for the multipart boundaries and part headers, on top of the token size limit
MULTIPART_OVERHEAD_BYTES = int(os.getenv("MULTIPART_OVERHEAD_BYTES", str(10 * 1024)))
UPLOAD_CHUNK_SIZE = int(os.getenv("UPLOAD_CHUNK_SIZE", str(64 * 1024)))
UPLOAD_FIELDS = tuple(
    field.strip()
    for field in os.getenv("UPLOAD_FIELDS", "file-1").split(",")
    if field.strip()
)

# Cleanup job settings
CLEANUP_INTERVAL_MINUTES = int(os.getenv("CLEANUP_INTERVAL_MINUTES", "10"))
CLEANUP_ON_STARTUP = os.getenv("CLEANUP_ON_STARTUP", "true").lower() == "true"

# Auth settings
AUTH_REALM = os.getenv("AUTH_REALM", "filedrop")
# scrypt cost as log2(N); 14 keeps a hash under the default hashlib memory limit
SCRYPT_ROUNDS = int(os.getenv("SCRYPT_ROUNDS", "14"))

# Server settings
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
