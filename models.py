from datetime import datetime

from pydantic import BaseModel


class PdfFileInfo(BaseModel):
    """Metadata for one stored file (no content)."""
    name: str
    position: int
    size: int = 0
    content_type: str | None = None
    last_modified: datetime | None = None

    @classmethod
    def from_entry(cls, entry) -> "PdfFileInfo":
        return cls(
            name=entry.logical_name,
            position=entry.position,
            size=entry.size,
            content_type=entry.content_type,
            last_modified=entry.last_modified,
        )


class StorageHealth(BaseModel):
    configured: bool
    has_access_key: bool
    has_secret_key: bool
    has_endpoint: bool
    has_bucket: bool
    endpoint: str | None = None
    bucket: str | None = None
    public_url_base: str | None = None
    key_prefix: str
    max_file_size: int
    supported_types: list[str] = []
