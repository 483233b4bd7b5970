"""Position ordering for stored PDFs.

Positions live in the object names themselves: every stored object is named
``"<position>-<logical name>"``. This module is the only place that parses or
formats those names. ``OrderingIndex`` keeps the in-memory view of
position <-> name, ``build_index`` derives it from a bucket listing and
``plan_reorder`` turns a move into an explicit list of renames.
"""

import re
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime

from services.errors import BlobNotFound
from services.storage import BlobStore

logger = logging.getLogger(__name__)

_PHYSICAL_NAME_RE = re.compile(r"^(\d+)-(.+)$")

# Concurrent head_object calls while building the index
HEAD_WORKERS = 8


def parse_physical_name(name: str) -> tuple[int | None, str]:
    """Split a stored name into (position, logical name).

    Names without a numeric prefix return ``(None, name)``.
    """
    m = _PHYSICAL_NAME_RE.match(name)
    if not m:
        return None, name
    return int(m.group(1)), m.group(2)


def format_physical_name(position: int, logical_name: str) -> str:
    return f"{position}-{logical_name}"


@dataclass
class IndexEntry:
    position: int
    physical_name: str
    logical_name: str
    size: int = 0
    content_type: str | None = None
    last_modified: datetime | None = None


class OrderingIndex:
    """Bidirectional position <-> logical name mapping.

    Not thread-safe; callers serialise access.
    """

    def __init__(self):
        self._by_position: dict[int, IndexEntry] = {}
        self._by_name: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._by_position)

    def __contains__(self, logical_name: str) -> bool:
        return logical_name in self._by_name

    def get(self, logical_name: str) -> IndexEntry | None:
        position = self._by_name.get(logical_name)
        if position is None:
            return None
        return self._by_position[position]

    def at(self, position: int) -> IndexEntry | None:
        return self._by_position.get(position)

    def positions(self) -> list[int]:
        return sorted(self._by_position)

    def max_position(self) -> int:
        return max(self._by_position, default=0)

    def next_position(self) -> int:
        return self.max_position() + 1

    def add(self, entry: IndexEntry) -> None:
        if entry.position < 1:
            raise ValueError(f"Position must be positive, got {entry.position}")
        if entry.position in self._by_position:
            raise ValueError(f"Position {entry.position} already taken by {self._by_position[entry.position].physical_name}")
        if entry.logical_name in self._by_name:
            raise ValueError(f"{entry.logical_name} already indexed")
        self._by_position[entry.position] = entry
        self._by_name[entry.logical_name] = entry.position

    def remove(self, logical_name: str) -> IndexEntry | None:
        position = self._by_name.pop(logical_name, None)
        if position is None:
            return None
        return self._by_position.pop(position)

    def entries(self) -> list[IndexEntry]:
        """Entries ordered by position ascending."""
        return [self._by_position[p] for p in self.positions()]


@dataclass(frozen=True)
class RenameStep:
    source: str
    target: str


def apply_rename(store: BlobStore, step: RenameStep) -> bool:
    """Rename ``step.source`` to ``step.target`` by copy then delete.

    Safe to repeat: a step whose source is already gone but whose target
    exists counts as done. Returns True when anything was changed.
    """
    if step.source == step.target:
        return False
    if not store.exists(step.source):
        if store.exists(step.target):
            return False
        raise BlobNotFound("rename", store.key(step.source))
    store.copy(step.source, step.target)
    store.delete(step.source)
    return True


def plan_reorder(index: OrderingIndex, logical_name: str, target: int) -> list[RenameStep]:
    """Renames that move ``logical_name`` to ``target``, shifting the files between.

    Shifted files are listed in increasing order of their current position;
    the moved file is always the last step. Empty when already in place.
    """
    moved = index.get(logical_name)
    if moved is None:
        raise KeyError(logical_name)
    current = moved.position
    if current == target:
        return []

    if current > target:
        shifted = [p for p in index.positions() if target <= p < current]
        delta = 1
    else:
        shifted = [p for p in index.positions() if current < p <= target]
        delta = -1

    steps = []
    for p in shifted:
        entry = index.at(p)
        steps.append(RenameStep(entry.physical_name, format_physical_name(p + delta, entry.logical_name)))
    steps.append(RenameStep(moved.physical_name, format_physical_name(target, moved.logical_name)))
    return steps


def build_index(store: BlobStore) -> OrderingIndex:
    """Derive the ordering index from the current bucket listing.

    Objects without a ``"<position>-"`` prefix, with position 0, or whose
    position is already claimed get the next free position and are renamed
    in the bucket. Storage errors propagate.
    """
    listing = store.list_blobs()
    index = OrderingIndex()
    handled: set[str] = set()

    # well-formed names claim their positions first, lowest position wins
    claims = []
    for info in listing:
        position, logical = parse_physical_name(info.name)
        if position is not None and position >= 1:
            claims.append((position, info.name, logical, info))
    claims.sort(key=lambda c: (c[0], c[1]))
    for position, name, logical, info in claims:
        if logical in index:
            logger.warning(f"Skipping {name}: {logical} is already indexed as {index.get(logical).physical_name}")
            handled.add(name)
            continue
        if index.at(position) is not None:
            continue
        index.add(IndexEntry(position, name, logical, info.size, last_modified=info.last_modified))
        handled.add(name)

    for info in listing:
        if info.name in handled:
            continue
        _, logical = parse_physical_name(info.name)
        if logical in index:
            logger.warning(f"Skipping {info.name}: {logical} is already indexed as {index.get(logical).physical_name}")
            continue
        position = index.next_position()
        new_name = format_physical_name(position, logical)
        logger.info(f"Assigning position {position} to {info.name}")
        apply_rename(store, RenameStep(info.name, new_name))
        index.add(IndexEntry(position, new_name, logical, info.size, last_modified=info.last_modified))

    _load_content_types(store, index)
    return index


def _load_content_types(store: BlobStore, index: OrderingIndex) -> None:
    entries = index.entries()
    if not entries:
        return
    with ThreadPoolExecutor(max_workers=min(HEAD_WORKERS, len(entries))) as executor:
        futures = {executor.submit(store.content_type, e.physical_name): e for e in entries}
        for future in as_completed(futures):
            entry = futures[future]
            try:
                entry.content_type = future.result()
            except BlobNotFound:
                logger.warning(f"{entry.physical_name} disappeared while indexing")
                index.remove(entry.logical_name)
