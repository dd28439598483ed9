from __future__ import annotations

from typing import Protocol

from kratolib_promo.models import Promotion, PromotionDraft, PromoTemplate, Release


class BackendError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(BackendError):
    pass


class UnauthorizedError(BackendError):
    pass


class PromotionBackend(Protocol):
    async def list_templates(self) -> list[PromoTemplate]: ...

    async def seed_templates(self, templates: list[PromoTemplate]) -> list[PromoTemplate]: ...

    async def get_release(self, release_id: str) -> Release: ...

    async def list_releases(self, user_id: str | None = None) -> list[Release]: ...

    async def get_promotion_by_release(self, release_id: str) -> Promotion | None: ...

    async def get_public_promotion(self, slug: str) -> Promotion: ...

    async def save_promotion(self, draft: PromotionDraft) -> Promotion: ...

    async def get_signed_url(self, key: str) -> str: ...
