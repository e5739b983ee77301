import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_EXPIRES_MINUTES = int(os.getenv("JWT_ACCESS_EXPIRES_MINUTES", "15"))

# Seeded on startup when both are set
ADMIN_EMAIL = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD") or ""

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
BACKEND_URL = os.getenv("BACKEND_URL", "")
MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "SoleMate <no-reply@solemate.shop>")
CONTACT_TO_EMAIL = (
    os.getenv("CONTACT_TO_EMAIL")
    or os.getenv("SUPPORT_EMAIL")
    or os.getenv("EMAIL_FROM")
    or ""
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
