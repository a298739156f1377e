from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union

from annostudio.models import DATASET_TYPES, Dataset, SharedUser, User

ELLIPSIS = "..."

PageToken = Union[int, str]


@dataclass(frozen=True)
class ActivityItem:
    id: str
    type: str
    title: str
    description: str
    timestamp: str
    dataset_id: Optional[str] = None


def filter_datasets(datasets: Iterable[Dataset], query: str) -> list[Dataset]:
    """Case-insensitive substring match on name, description and type."""
    q = (query or "").strip().lower()
    items = list(datasets)
    if not q:
        return items
    out: list[Dataset] = []
    for d in items:
        hay = (d.name or "", d.description or "", d.dataset_type or "")
        if any(q in h.lower() for h in hay):
            out.append(d)
    return out


def total_pages(total_items: int, per_page: int) -> int:
    if per_page <= 0:
        return 0
    return int(math.ceil(max(0, total_items) / per_page))


def clamp_page(page: int, n_pages: int) -> int:
    return max(1, min(int(page), max(1, n_pages)))


def page_slice(items: list, page: int, per_page: int) -> list:
    """1-based page of ``items``."""
    page = clamp_page(page, total_pages(len(items), per_page))
    start = (page - 1) * per_page
    return items[start : start + per_page]


def visible_pages(current: int, n_pages: int, delta: int = 2) -> list[PageToken]:
    """
    Page buttons around ``current``: always the first and last page, ``delta`` neighbours
    on each side, and ``"..."`` where pages are skipped.
    """
    if n_pages <= 1:
        return [1] if n_pages == 1 else []
    middle = list(range(max(2, current - delta), min(n_pages - 1, current + delta) + 1))
    out: list[PageToken] = [1]
    if current - delta > 2:
        out.append(ELLIPSIS)
    out.extend(middle)
    if current + delta < n_pages - 1:
        out.append(ELLIPSIS)
    out.append(n_pages)
    return out


def _ts(value: Optional[str]) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def recent_datasets(datasets: Iterable[Dataset], limit: int = 5) -> list[Dataset]:
    return sorted(datasets, key=lambda d: _ts(d.created_at), reverse=True)[:limit]


def activity_feed(datasets: Iterable[Dataset], limit: int = 20) -> list[ActivityItem]:
    items = [
        ActivityItem(
            id=f"dataset-{d.id}",
            type="dataset_created",
            title="Dataset Created",
            description=f'Created dataset "{d.name}"',
            timestamp=d.created_at or "",
            dataset_id=d.id,
        )
        for d in datasets
    ]
    return sorted(items, key=lambda a: _ts(a.timestamp), reverse=True)[:limit]


def type_counts(datasets: Iterable[Dataset]) -> dict[str, int]:
    """Datasets per type, every known type present (untyped ones count as ``text``)."""
    counts = Counter((d.dataset_type or "text") for d in datasets)
    out = {t: int(counts.get(t, 0)) for t in DATASET_TYPES}
    for t, n in counts.items():
        if t not in out:
            out[t] = int(n)
    return out


# ── Sharing ────────────────────────────────────────────────


def shareable_users(
    all_users: Iterable[User], shared: Iterable[SharedUser], *, current_user_id: str, owner_id: str
) -> list[User]:
    """Users that can still be added: not already shared, not the current user, not the owner."""
    taken = {s.user_id for s in shared}
    return [u for u in all_users if u.id not in taken and u.id != current_user_id and u.id != owner_id]


def add_shared_user(shared: list[SharedUser], user: User) -> list[SharedUser]:
    if any(s.user_id == user.id for s in shared):
        return list(shared)
    return [*shared, SharedUser(user_id=user.id, email=user.email)]


def remove_shared_user(shared: list[SharedUser], user_id: str) -> list[SharedUser]:
    return [s for s in shared if s.user_id != user_id]


def filter_users(users: Iterable[User], query: str) -> list[User]:
    q = (query or "").strip().lower()
    items = list(users)
    if not q:
        return items
    return [u for u in items if q in u.full_name.lower() or q in (u.email or "").lower() or q in (u.role or "").lower()]


def format_date(value: Optional[str], fmt: str = "%b %d, %Y") -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime(fmt)
    except ValueError:
        return str(value)
