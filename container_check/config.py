# container_check/config.py
import os
import urllib.parse

from dotenv import load_dotenv

load_dotenv()

# Database configuration (env defaults)
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "container_check")
DB_PORT = int(os.getenv("DB_PORT", 3306))

_password_enc = urllib.parse.quote_plus(DB_PASSWORD)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{_password_enc}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "change_this_in_production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXP_DAYS = int(os.getenv("JWT_EXP_DAYS", "1"))

# Blob storage
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
PHOTO_BUCKET = os.getenv("PHOTO_BUCKET", "container-photos")
USE_S3 = os.getenv("USE_S3", "false").lower() == "true"
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "ap-southeast-1")

# Photo rules
MIN_PHOTOS = int(os.getenv("MIN_PHOTOS", "1"))
MAX_PHOTOS = int(os.getenv("MAX_PHOTOS", "20"))
UPLOAD_RETRIES = int(os.getenv("UPLOAD_RETRIES", "2"))
UPLOAD_BACKOFF_SECONDS = float(os.getenv("UPLOAD_BACKOFF_SECONDS", "0.5"))

# Dashboards
DASHBOARD_CACHE_TTL = int(os.getenv("DASHBOARD_CACHE_TTL", "60"))
