from __future__ import annotations

import logging
from typing import Any

import httpx

from kratolib_promo.config import settings
from kratolib_promo.models import Promotion, PromotionDraft, PromoTemplate, Release
from kratolib_promo.providers.base import BackendError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


class KratoLibClient:
    """
    Async client for the KratoLib REST backend. One instance per incoming
    request so the caller's bearer token never leaks across users.
    """

    name = "kratolib"

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            base_url=(base_url or settings.api_base_url).rstrip("/") + "/",
            headers=headers,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> KratoLibClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def list_templates(self) -> list[PromoTemplate]:
        data = await self._request("GET", "promo-templates")
        return [PromoTemplate.model_validate(t) for t in _unwrap_list(data, "templates")]

    async def seed_templates(self, templates: list[PromoTemplate]) -> list[PromoTemplate]:
        data = await self._request("POST", "promo-templates/seed", json=[t.to_wire() for t in templates])
        return [PromoTemplate.model_validate(t) for t in _unwrap_list(data, "templates")]

    async def get_release(self, release_id: str) -> Release:
        data = await self._request("GET", f"releases/{release_id}")
        return Release.model_validate(_unwrap(data, "release"))

    async def list_releases(self, user_id: str | None = None) -> list[Release]:
        params = {"userId": user_id} if user_id else None
        data = await self._request("GET", "releases", params=params)
        return [Release.model_validate(r) for r in _unwrap_list(data, "releases")]

    async def get_promotion_by_release(self, release_id: str) -> Promotion | None:
        try:
            data = await self._request("GET", f"promotions/release/{release_id}")
        except NotFoundError:
            return None
        data = _unwrap(data, "promotion")
        if not data:
            return None
        return Promotion.model_validate(data)

    async def get_public_promotion(self, slug: str) -> Promotion:
        data = _unwrap(await self._request("GET", f"promotions/public/{slug}"), "promotion")
        if not data:
            raise NotFoundError("Page not found", status_code=404)
        return Promotion.model_validate(data)

    async def save_promotion(self, draft: PromotionDraft) -> Promotion:
        body = draft.model_dump(by_alias=True, exclude_none=True)
        data = await self._request("POST", "promotions", json=body)
        return Promotion.model_validate(_unwrap(data, "promotion"))

    async def get_signed_url(self, key: str) -> str:
        data = await self._request("GET", "s3/signed-url", params={"key": key})
        url = (data or {}).get("url") if isinstance(data, dict) else None
        if not url:
            raise BackendError("signed url response has no url")
        return url

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise BackendError(f"backend unreachable: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("%s %s -> %s %s", method, path, resp.status_code, message)
            if resp.status_code == 404:
                raise NotFoundError(message, status_code=404)
            if resp.status_code == 401:
                raise UnauthorizedError(message, status_code=401)
            raise BackendError(message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(f"backend returned invalid JSON for {path}", status_code=resp.status_code) from exc


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error")
        if msg:
            return str(msg)
    return resp.reason_phrase or "An error occurred"


def _unwrap(data: Any, key: str) -> Any:
    # Some endpoints answer {"data": {...}} or {"<key>": {...}} instead of the bare document.
    if isinstance(data, dict):
        for k in ("data", key):
            inner = data.get(k)
            if isinstance(inner, (dict, list)):
                return inner
    return data


def _unwrap_list(data: Any, key: str) -> list[Any]:
    data = _unwrap(data, key)
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        return []
    return [d for d in data if isinstance(d, dict)]
