from __future__ import annotations

import logging
import requests
from typing import Any, Callable, Optional

from annostudio.config import get_settings
from annostudio.exceptions import ApiError, AuthExpiredError, NotFoundError

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error")
        # validation pipes return a list of messages
        if isinstance(msg, list):
            return "; ".join(str(m) for m in msg)
        if msg:
            return str(msg)
    return response.reason or f"HTTP {response.status_code}"


class ApiClient:
    """
    Bearer-token JSON client shared by every resource module.

    - Non-2xx responses raise `ApiError` (401 -> `AuthExpiredError`, 404 -> `NotFoundError`)
    - Transport failures raise `ApiError` with status_code 0
    - `allow_404=True` returns None instead of raising for "absent" resources
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        on_auth_expired: Optional[Callable[[], None]] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_base).rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = float(timeout if timeout is not None else settings.REQUEST_TIMEOUT)
        self.on_auth_expired = on_auth_expired

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        data: Any = None,
        allow_404: bool = False,
    ) -> Any:
        url = self.url(path)
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                files=files,
                data=data,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(f"Could not reach the server: {e}") from e

        logger.debug("%s %s -> %s", method, path, resp.status_code)

        if resp.status_code == 401:
            logger.warning("%s %s: token rejected, signing out", method, path)
            if self.on_auth_expired is not None:
                self.on_auth_expired()
            raise AuthExpiredError(_error_message(resp), status_code=401)
        if resp.status_code == 404:
            if allow_404:
                return None
            raise NotFoundError(_error_message(resp), status_code=404)
        if resp.status_code >= 400:
            msg = _error_message(resp)
            logger.warning("%s %s -> %s: %s", method, path, resp.status_code, msg)
            payload = None
            try:
                payload = resp.json()
            except ValueError:
                payload = resp.text
            raise ApiError(msg, status_code=resp.status_code, payload=payload)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {path}", status_code=resp.status_code) from e

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Any:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)
