import os
from dotenv import load_dotenv

load_dotenv()

REQUIRED_ENV_VARS = (
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET_NAME",
    "R2_PUBLIC_URL",
)

_missing = [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]
if _missing:
    raise RuntimeError(f"Missing required environment variables: {', '.join(_missing)}")

R2_ACCOUNT_ID = os.environ["R2_ACCOUNT_ID"]
R2_ACCESS_KEY_ID = os.environ["R2_ACCESS_KEY_ID"]
R2_SECRET_ACCESS_KEY = os.environ["R2_SECRET_ACCESS_KEY"]
R2_BUCKET_NAME = os.environ["R2_BUCKET_NAME"]
R2_PUBLIC_URL = os.environ["R2_PUBLIC_URL"]
R2_ENDPOINT_URL = os.getenv("R2_ENDPOINT_URL") or f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
R2_REGION = os.getenv("R2_REGION", "auto")

BASIC_AUTH_USER = os.getenv("BASIC_AUTH_USER")
BASIC_AUTH_PASS = os.getenv("BASIC_AUTH_PASS")

DB_URL = os.getenv("DB_URL", "sqlite:///./uploads.db")
DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

UPLOAD_PART_SIZE = int(os.getenv("UPLOAD_PART_SIZE_BYTES", str(30 * 1024 * 1024)))
UPLOAD_QUEUE_SIZE = max(1, int(os.getenv("UPLOAD_QUEUE_SIZE", "4")))
LINK_EXPIRY_SECONDS = int(os.getenv("LINK_EXPIRY_SECONDS", str(3 * 60 * 60)))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))
