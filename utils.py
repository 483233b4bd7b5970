import re

def safe_file_name(name: str | None) -> str:
    """Reduce an uploaded file name to its trimmed basename."""
    if not name:
        return ""
    base = re.split(r"[\\/]", name.strip())[-1].strip()
    return "" if base in (".", "..") else base

def parse_position(value: str | None) -> int | None:
    """Parse a positive integer position; None for anything else."""
    if value is None:
        return None
    value = value.strip()
    if not re.fullmatch(r"\d+", value):
        return None
    position = int(value)
    return position if position > 0 else None
