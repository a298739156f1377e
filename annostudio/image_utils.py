from __future__ import annotations

import logging
import re
import requests
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from annostudio.api.image_proxy import proxied_image_url
from annostudio.models import ImageMetadata

logger = logging.getLogger(__name__)

IMAGE_FETCH_TIMEOUT = 15.0

# load states, per URL
DIRECT = "direct"
PROXY = "proxy"
RETRYING = "retrying"
FAILED = "failed"
LOADED = "loaded"


def parse_image_urls(cell: Any) -> list[str]:
    """Image URLs from a cell: comma/newline separated (or a list), http(s) only, de-duplicated."""
    if cell is None:
        return []
    parts: Iterable[Any] = cell if isinstance(cell, (list, tuple)) else re.split(r"[,\n]", str(cell))
    out: list[str] = []
    for p in parts:
        url = str(p).strip()
        if url.startswith(("http://", "https://")) and url not in out:
            out.append(url)
    return out


def build_image_metadata(urls: list[str], saved: Optional[list[ImageMetadata]] = None) -> list[ImageMetadata]:
    by_url = {m.url: m for m in (saved or [])}
    out: list[ImageMetadata] = []
    for i, url in enumerate(urls):
        prev = by_url.get(url)
        out.append(
            ImageMetadata(
                url=url,
                caption=prev.caption if prev else "",
                is_selected=prev.is_selected if prev else False,
                order=i,
            )
        )
    return out


def update_caption(images: list[ImageMetadata], index: int, caption: str) -> list[ImageMetadata]:
    return [img.model_copy(update={"caption": caption}) if i == index else img for i, img in enumerate(images)]


def toggle_selection(images: list[ImageMetadata], index: int) -> list[ImageMetadata]:
    return [img.model_copy(update={"is_selected": not img.is_selected}) if i == index else img for i, img in enumerate(images)]


def selected_count(images: list[ImageMetadata]) -> int:
    return sum(1 for img in images if img.is_selected)


def clamp_index(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(int(index), count - 1))


def navigate(index: int, count: int, direction: int) -> int:
    """Step by ``direction`` (+1/-1), stopping at both ends."""
    return clamp_index(clamp_index(index, count) + (1 if direction > 0 else -1), count)


@dataclass
class ImageLoadTracker:
    """
    Direct-then-proxy loading per image URL.

    direct --fail--> proxy (only when the dataset has image credentials) --fail--> failed
    failed --retry--> retrying (loads direct again) ; retrying --cancel--> failed
    any --success--> loaded
    """

    dataset_id: str
    api_base: str
    auth_configured: bool = False
    cache_version: Optional[Union[str, int]] = None
    states: dict[str, str] = field(default_factory=dict)
    via_proxy: set[str] = field(default_factory=set)

    def state(self, url: str) -> str:
        return self.states.get(url, DIRECT)

    def display_url(self, url: str) -> str:
        st = self.state(url)
        if st == PROXY or (st == LOADED and url in self.via_proxy):
            return proxied_image_url(self.api_base, self.dataset_id, url, self.cache_version)
        return url

    def mark_failed(self, url: str) -> str:
        st = self.state(url)
        if st in (DIRECT, RETRYING) or (st == LOADED and url not in self.via_proxy):
            nxt = PROXY if self.auth_configured else FAILED
        else:
            nxt = FAILED
        self.states[url] = nxt
        logger.debug("Image %s: %s -> %s", url, st, nxt)
        return nxt

    def mark_loaded(self, url: str) -> None:
        if self.state(url) == PROXY:
            self.via_proxy.add(url)
        elif self.state(url) != LOADED:
            self.via_proxy.discard(url)
        self.states[url] = LOADED

    def retry(self, url: str) -> bool:
        if self.state(url) != FAILED:
            return False
        self.states[url] = RETRYING
        return True

    def cancel_retry(self, url: str) -> bool:
        if self.state(url) != RETRYING:
            return False
        self.states[url] = FAILED
        return True

    def is_failed(self, url: str) -> bool:
        return self.state(url) == FAILED

    def reset(self) -> None:
        self.states.clear()
        self.via_proxy.clear()


def fetch_image(
    url: str,
    tracker: ImageLoadTracker,
    session: Optional[requests.Session] = None,
    timeout: float = IMAGE_FETCH_TIMEOUT,
) -> Optional[bytes]:
    """
    Fetch bytes for display, walking the tracker until a load succeeds or the URL fails.

    Returns None when the image is (now) in the failed state; each attempt has its own timeout.
    """
    http = session or requests.Session()
    while not tracker.is_failed(url):
        target = tracker.display_url(url)
        try:
            resp = http.get(target, timeout=timeout)
            if resp.status_code < 400 and resp.content:
                tracker.mark_loaded(url)
                return resp.content
            logger.info("Image %s returned HTTP %s", target, resp.status_code)
        except requests.RequestException as e:
            logger.info("Image %s failed: %s", target, e)
        tracker.mark_failed(url)
    return None


def prune_cache(cache: dict[str, Any], keep: Iterable[str]) -> int:
    """Drop cached entries whose URL is not in ``keep``; returns how many were dropped."""
    keep_set = set(keep)
    stale = [url for url in cache if url not in keep_set]
    for url in stale:
        del cache[url]
    return len(stale)
