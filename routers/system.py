from fastapi import APIRouter

from models import StorageHealth
from services.pdf_service import MAX_FILE_SIZE_ALLOWED, SUPPORTED_TYPES
from services.storage import (
    R2_ACCESS_KEY_ID,
    R2_BUCKET_NAME,
    R2_ENDPOINT,
    R2_PUBLIC_URL_BASE,
    R2_SECRET_ACCESS_KEY,
    PDF_KEY_PREFIX,
)

router = APIRouter()


@router.get("/health", response_model=StorageHealth)
def storage_health():
    """Storage configuration diagnostics (no secrets)."""
    return StorageHealth(
        configured=bool(R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY and R2_ENDPOINT and R2_BUCKET_NAME),
        has_access_key=bool(R2_ACCESS_KEY_ID),
        has_secret_key=bool(R2_SECRET_ACCESS_KEY),
        has_endpoint=bool(R2_ENDPOINT),
        has_bucket=bool(R2_BUCKET_NAME),
        endpoint=R2_ENDPOINT,
        bucket=R2_BUCKET_NAME,
        public_url_base=R2_PUBLIC_URL_BASE,
        key_prefix=PDF_KEY_PREFIX,
        max_file_size=MAX_FILE_SIZE_ALLOWED,
        supported_types=SUPPORTED_TYPES,
    )
