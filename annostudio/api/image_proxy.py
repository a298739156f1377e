from __future__ import annotations

from typing import Optional, Union
from urllib.parse import quote

from annostudio.models import ImageAuthConfig

_URI_SAFE = "!*'()"


def proxied_image_url(api_base: str, dataset_id: str, image_url: str, cache_version: Optional[Union[str, int]] = None) -> str:
    """Backend proxy URL; ``cache_version`` (dataset updatedAt) busts cached credentials."""
    encoded = quote(image_url, safe=_URI_SAFE)
    url = f"{api_base.rstrip('/')}/image-proxy/{dataset_id}?url={encoded}"
    if cache_version:
        url += f"&v={quote(str(cache_version), safe=_URI_SAFE)}"
    return url


def has_auth_configured(config: Optional[ImageAuthConfig]) -> bool:
    return bool(config is not None and config.is_private and config.username and config.password)
