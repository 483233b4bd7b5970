"""First-page JPEG previews for uploaded PDFs."""

import logging
import threading
from io import BytesIO

import pypdfium2 as pdfium
from PIL import Image

logger = logging.getLogger(__name__)

THUMB_MAX_SIZE = (800, 800)
THUMB_CONTENT_TYPE = "image/jpeg"

# pdfium is not thread-safe; uploads render from worker threads
_pdfium_lock = threading.Lock()


def thumb_name(logical_name: str) -> str:
    return f"{logical_name}.jpg"


def render_thumbnail(content: bytes) -> bytes | None:
    """Render page one of a PDF to JPEG bytes, or None if it cannot be rendered."""
    if not content:
        return None
    try:
        with _pdfium_lock:
            doc = pdfium.PdfDocument(BytesIO(content))
            try:
                if len(doc) == 0:
                    return None
                page = doc[0]
                image = page.render(scale=2.0).to_pil()
            finally:
                doc.close()
        image = image.convert("RGB")
        image.thumbnail(THUMB_MAX_SIZE, Image.LANCZOS)
        buf = BytesIO()
        image.save(buf, format="JPEG", quality=90)
        return buf.getvalue()
    except pdfium.PdfiumError as e:
        logger.warning(f"Could not render thumbnail: {e}")
        return None
