"""PDF file service: upload, download, list, delete and reorder.

One ``PdfService`` owns the ordering index for one bucket prefix. The index is
built once from the bucket listing and then kept up to date by every mutating
call; reorder rebuilds it from a fresh listing. All calls run under a single
lock so index updates and rename sequences never interleave.
"""

import os
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from dotenv import load_dotenv

from services.errors import (
    BlobNotFound,
    DeleteFailedError,
    InsufficientFilesError,
    InvalidRequest,
    NameRequired,
    NotFoundError,
    StorageError,
    UploadValidationError,
)
from services.ordering import (
    IndexEntry,
    OrderingIndex,
    apply_rename,
    build_index,
    format_physical_name,
    plan_reorder,
)
from services.storage import BlobStore, PDF_THUMB_PREFIX, create_blob_store
from services.thumbnails import THUMB_CONTENT_TYPE, render_thumbnail, thumb_name
from utils import safe_file_name

logger = logging.getLogger(__name__)

load_dotenv()

MAX_FILE_SIZE_ALLOWED = int(os.getenv("MAX_FILE_SIZE_ALLOWED", "5242880"))
SUPPORTED_TYPES = [
    t.strip() for t in os.getenv("SUPPORTED_TYPES", "application/pdf").split(",") if t.strip()
]

PDF_CONTENT_TYPE = "application/pdf"


@dataclass
class StoredObject:
    physical_name: str
    logical_name: str
    content_type: str
    size: int
    content: bytes
    position: int


class PdfService:
    def __init__(
        self,
        store: BlobStore,
        thumbs: BlobStore | None = None,
        max_file_size: int = MAX_FILE_SIZE_ALLOWED,
        supported_types: list[str] | None = None,
    ):
        self._store = store
        self._thumbs = thumbs or store.with_prefix(PDF_THUMB_PREFIX)
        self.max_file_size = max_file_size
        self.supported_types = list(supported_types if supported_types is not None else SUPPORTED_TYPES)
        self._lock = threading.RLock()
        self._index: OrderingIndex | None = None

    @property
    def store(self) -> BlobStore:
        return self._store

    def initialize(self) -> None:
        """Create the bucket if needed and build the index. Storage errors propagate."""
        with self._lock:
            self._store.ensure_bucket()
            self._index = build_index(self._store)
            logger.info(f"Indexed {len(self._index)} file(s) under {self._store.prefix}")

    def refresh(self) -> list[IndexEntry]:
        """Rebuild the index from the bucket listing."""
        with self._lock:
            self._index = build_index(self._store)
            return self._index.entries()

    def _get_index(self) -> OrderingIndex:
        if self._index is None:
            self._index = build_index(self._store)
        return self._index

    def _resolve(self, logical_name: str) -> IndexEntry:
        entry = self._get_index().get(logical_name)
        if entry is None:
            raise NotFoundError(f"{logical_name} not found")
        return entry

    def _require_stored(self, entry: IndexEntry) -> None:
        if not self._store.exists(entry.physical_name):
            logger.warning(f"{entry.physical_name} is indexed but missing from storage")
            self._get_index().remove(entry.logical_name)
            raise NotFoundError(f"{entry.logical_name} not found")

    def validate_upload(self, content_type: str | None, length: int) -> None:
        errors: dict[str, list[str]] = {}
        if length > self.max_file_size:
            errors["FileSizeTooBig"] = [
                f"File size is bigger than maximum allowed file size {self.max_file_size}"
            ]
        if content_type not in self.supported_types:
            errors["InvalidFileType"] = ["Input file type is not supported"]
        if errors:
            raise UploadValidationError(errors)

    def upload(self, content: bytes | None, filename: str | None, content_type: str | None, length: int) -> str:
        """Store a new file at the next position and return its public location.

        Re-uploading an existing name replaces the content and keeps its position.
        """
        if content is None:
            raise UploadValidationError({"NoFile": ["file not uploaded"]})
        self.validate_upload(content_type, length)
        logical_name = safe_file_name(filename)
        if not logical_name:
            raise NameRequired("FileName not provided")

        thumb = render_thumbnail(content) if content_type == PDF_CONTENT_TYPE else None

        with self._lock:
            index = self._get_index()
            existing = index.get(logical_name)
            position = existing.position if existing else index.next_position()
            # re-upload overwrites the key already stored for the name
            physical_name = existing.physical_name if existing else format_physical_name(position, logical_name)
            location = self._store.put(physical_name, content, content_type)
            if existing:
                index.remove(logical_name)
            index.add(
                IndexEntry(
                    position=position,
                    physical_name=physical_name,
                    logical_name=logical_name,
                    size=len(content),
                    content_type=content_type,
                    last_modified=datetime.now(timezone.utc),
                )
            )
            try:
                if thumb:
                    self._thumbs.put(thumb_name(logical_name), thumb, THUMB_CONTENT_TYPE)
                elif existing:
                    self._thumbs.delete(thumb_name(logical_name))
            except StorageError as e:
                logger.warning(f"Could not update thumbnail for {logical_name}: {e}")
        logger.info(f"Uploaded {physical_name} ({len(content)} bytes)")
        return location

    def download(self, logical_name: str | None) -> StoredObject:
        name = (logical_name or "").strip()
        if not name:
            raise NameRequired("FileName not provided")
        with self._lock:
            entry = self._resolve(name)
            try:
                blob = self._store.get(entry.physical_name)
            except BlobNotFound:
                self._get_index().remove(name)
                raise NotFoundError(f"{name} not found")
        return StoredObject(
            physical_name=entry.physical_name,
            logical_name=entry.logical_name,
            content_type=blob.content_type,
            size=blob.size,
            content=blob.content,
            position=entry.position,
        )

    def thumbnail(self, logical_name: str | None) -> bytes:
        name = (logical_name or "").strip()
        if not name:
            raise NameRequired("FileName not provided")
        with self._lock:
            self._resolve(name)
            try:
                return self._thumbs.get(thumb_name(name)).content
            except BlobNotFound:
                raise NotFoundError(f"No thumbnail for {name}")

    def list_files(self) -> list[IndexEntry]:
        with self._lock:
            return self._get_index().entries()

    def delete(self, logical_name: str | None) -> str:
        """Delete a file and return its physical name. Other positions are left as they are."""
        name = (logical_name or "").strip()
        if not name:
            raise NameRequired("FileName not provided")
        with self._lock:
            entry = self._resolve(name)
            self._require_stored(entry)
            if not self._store.delete(entry.physical_name):
                raise DeleteFailedError(f"Unable to delete file : {entry.physical_name}")
            self._get_index().remove(name)
            try:
                self._thumbs.delete(thumb_name(name))
            except StorageError as e:
                logger.warning(f"Could not remove thumbnail for {name}: {e}")
        logger.info(f"Deleted {entry.physical_name}")
        return entry.physical_name

    def reorder(self, logical_name: str | None, position: int | None) -> list[IndexEntry]:
        """Move a file to ``position``, shifting the files in between by one.

        ``position`` beyond the last position is clamped to it. Returns the
        ordered list as re-read from storage.
        """
        name = (logical_name or "").strip()
        if not name or position is None or position < 1:
            raise InvalidRequest("File name or position is invalid")
        with self._lock:
            index = self._get_index()
            entry = self._resolve(name)
            self._require_stored(entry)
            if len(index) < 2:
                raise InsufficientFilesError("Not enough files to re-order")
            target = min(position, index.max_position())

            steps = plan_reorder(index, name, target)
            if not steps:
                return index.entries()

            logger.info(f"Moving {name} from {entry.position} to {target} ({len(steps)} renames)")
            completed = 0
            try:
                for step in steps:
                    apply_rename(self._store, step)
                    completed += 1
                self._index = build_index(self._store)
            except StorageError:
                logger.error(
                    f"Reorder of {name} stopped after {completed}/{len(steps)} renames; "
                    f"completed: {[(s.source, s.target) for s in steps[:completed]]}"
                )
                # rebuilt from the bucket on next use
                self._index = None
                raise
            return self._index.entries()


# Module-level service shared by all requests
_service: PdfService | None = None
_service_lock = threading.Lock()


def get_pdf_service() -> PdfService | None:
    """Get or create the shared service; None when storage is not configured.

    The first call lists the bucket and builds the index.
    """
    global _service
    with _service_lock:
        if _service is None:
            store = create_blob_store()
            if store is None:
                return None
            service = PdfService(store)
            service.initialize()
            _service = service
        return _service


def set_pdf_service(service: PdfService | None) -> None:
    """Replace the shared service (None drops it)."""
    global _service
    with _service_lock:
        _service = service
