"""Per-task start options and the default item describers.

Items are opaque to the engine.  The describers only pull an id, a title and
a short display label out of them for the error log and the progress label.
Mappings and objects are both supported, looked up by ``id`` / ``title`` /
``url``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse


def _lookup(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def extract_domain(url: str) -> str:
    """``https://www.example.com/a`` → ``example.com``; unparseable input is returned as-is."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return url
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host


def default_id_of(item: Any, index: int) -> Any:
    item_id = _lookup(item, "id")
    return index if item_id is None else item_id


def default_title_of(item: Any) -> str:
    return str(_lookup(item, "title") or _lookup(item, "url") or item)


def default_label_of(item: Any) -> str:
    title = _lookup(item, "title")
    if title:
        return str(title)
    url = _lookup(item, "url")
    if url:
        return extract_domain(str(url))
    return str(item)


@dataclass
class StartOptions:
    """Options fixed for the lifetime of one task.

    Attributes:
        base_delay_ms: Operator pacing; clamped by the policy.  ``None``
            uses the policy default.
        fields: Metadata fields the task generates (echoed in snapshots).
        strategy: Opaque generation strategy, passed through untouched.
        id_of: ``(item, index) -> id`` for error entries.
        title_of: ``item -> str`` for error entries.
        label_of: ``item -> str`` for the current-window label.
    """

    base_delay_ms: float | None = None
    fields: list[str] = field(default_factory=list)
    strategy: dict[str, Any] = field(default_factory=dict)
    id_of: Callable[[Any, int], Any] = default_id_of
    title_of: Callable[[Any], str] = default_title_of
    label_of: Callable[[Any], str] = default_label_of
