"""
Path arithmetic over filesystem URLs.

Locations look like ``hdfs://prod/warehouse/sales.db/orders/dt=2024-01-01``:
an optional namespace (scheme and authority) followed by an absolute path.
Every function here is pure.
"""

from __future__ import annotations

import re

NAMESPACE_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*://[^/]*)")


def get_namespace(url: str) -> str | None:
    """Scheme and authority of a URL, or None for a bare path."""
    match = NAMESPACE_RE.match(url)
    return match.group(1) if match else None


def strip_namespace(url: str) -> str:
    """The absolute path of a URL, without its namespace."""
    namespace = get_namespace(url)
    path = url[len(namespace) :] if namespace else url
    if not path.startswith("/"):
        path = "/" + path
    return path


def reduce_url_by(url: str, level: int) -> str:
    """
    Drop ``level`` trailing segments from a URL.

    Reducing by more segments than the path has yields the root of the
    namespace. Trailing slashes are ignored.

    Args:
        url: Location, with or without namespace
        level: Number of trailing segments to drop

    Returns:
        The reduced location

    Raises:
        ValueError: If level is negative

    Example:
        >>> reduce_url_by("/w/db.db/tbl/part=1", 1)
        '/w/db.db/tbl'
        >>> reduce_url_by("hdfs://ns/w/db.db/tbl", 5)
        'hdfs://ns/'
    """
    if level < 0:
        raise ValueError(f"Consolidation level can't be negative: {level}")
    namespace = get_namespace(url) or ""
    segments = [s for s in strip_namespace(url).split("/") if s]
    kept = segments[: max(len(segments) - level, 0)]
    return f"{namespace}/{'/'.join(kept)}"


def partition_depth(partition_spec: str) -> int:
    """Number of directory levels a partition spec spans (``a=1/b=2`` is 2)."""
    return len([p for p in partition_spec.split("/") if p])


def is_sub_path(path: str, parent: str) -> bool:
    """True if path equals parent or lies below it on a segment boundary."""
    parent = parent.rstrip("/")
    if not parent:
        return path.startswith("/")
    return path == parent or path.startswith(parent + "/")
