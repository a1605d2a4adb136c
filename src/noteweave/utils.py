"""Utility functions for noteweave."""

import sys
import uuid
from datetime import datetime, time, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

ROOT_PATH = "/"
PATH_SEPARATOR = "/"
CONFLICT_SUFFIX_TEMPLATE = "{name} ({attempt})"


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_to_stdout: bool = False,
    log_dir: Optional[Path] = None,
) -> None:  # pragma: no cover
    """Configure loguru sinks.

    Args:
        log_level: Minimum level for every sink
        log_to_file: Write to noteweave.log in log_dir (defaults to ~/.noteweave)
        log_to_stdout: Write to stderr, for interactive debugging
        log_dir: Directory holding the rotating log file
    """
    logger.remove()

    if log_to_file:
        log_dir = log_dir or Path.home() / ".noteweave"
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "noteweave.log"),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
            colorize=False,
        )

    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=True, colorize=True)

    logger.info(f"Logging configured: level={log_level} file={log_to_file} stdout={log_to_stdout}")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(moment: datetime) -> datetime:
    """Midnight UTC of the day containing `moment`."""
    moment = ensure_timezone_aware(moment)
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def days_from(moment: datetime, days: int) -> datetime:
    return start_of_day(moment) + timedelta(days=days)


def generate_node_id(namespace: str) -> str:
    return f"{namespace}-{uuid.uuid4()}"


def generate_root_id(namespace: str) -> str:
    return f"{namespace}-root-{uuid.uuid4()}"


def virtual_root_id(namespace: str) -> str:
    return f"{namespace}-virtual-root"


def generate_annotation_id(prefix: str) -> str:
    """Short annotation id such as `clz-1a2b3c4d`."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def normalize_path(path: str) -> str:
    """Normalize an absolute node path.

    Strips surrounding whitespace and trailing separators. Raises ValueError for
    relative paths and empty segments.

    Examples:
        "/a/b.md/" -> "/a/b.md"
        "/" -> "/"
    """
    path = (path or "").strip()
    if not path.startswith(PATH_SEPARATOR):
        raise ValueError(f"Path must be absolute: {path!r}")
    if path == ROOT_PATH:
        return ROOT_PATH
    path = path.rstrip(PATH_SEPARATOR)
    if path == "":
        return ROOT_PATH
    segments = path.split(PATH_SEPARATOR)[1:]
    if any(segment.strip() == "" for segment in segments):
        raise ValueError(f"Path contains an empty segment: {path!r}")
    return path


def validate_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Name must not be empty")
    if PATH_SEPARATOR in name:
        raise ValueError(f"Name must not contain '{PATH_SEPARATOR}': {name!r}")
    return name


def join_path(parent_path: str, name: str) -> str:
    """Child path of `parent_path`; children of the root avoid a double separator."""
    if parent_path == ROOT_PATH:
        return f"{ROOT_PATH}{name}"
    return f"{parent_path}{PATH_SEPARATOR}{name}"


def split_path(path: str) -> Tuple[str, str]:
    """Split a normalized path into (parent_path, name).

    >>> split_path("/a/b.md")
    ('/a', 'b.md')
    >>> split_path("/a")
    ('/', 'a')
    """
    parent, _, name = path.rpartition(PATH_SEPARATOR)
    return (parent or ROOT_PATH), name


def descendant_prefix(path: str) -> str:
    """Prefix shared by every descendant path of `path`."""
    return path if path == ROOT_PATH else f"{path}{PATH_SEPARATOR}"


def descendant_range(path: str) -> Tuple[str, str]:
    """Exclusive (lower, upper) bounds for a path-index range scan of descendants.

    Every descendant path starts with `prefix`, and "0" is the character that
    sorts right after the separator, so descendants fall strictly between
    `prefix` and `prefix[:-1] + "0"`.
    """
    prefix = descendant_prefix(path)
    return prefix, f"{prefix[:-1]}0"


def is_same_or_descendant(path: str, ancestor_path: str) -> bool:
    if path == ancestor_path:
        return True
    return path.startswith(descendant_prefix(ancestor_path))


def with_conflict_suffix(name: str, attempt: int) -> str:
    return CONFLICT_SUFFIX_TEMPLATE.format(name=name, attempt=attempt)


def chunked(items, size: int):
    """Yield successive lists of at most `size` items."""
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start : start + size]
