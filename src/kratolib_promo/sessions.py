from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field

from kratolib_promo.catalog import TemplateCatalog
from kratolib_promo.config import settings
from kratolib_promo.links import sanitize_slug
from kratolib_promo.models import Promotion, PromotionDraft, PromoTemplate, Release, StreamingLink
from kratolib_promo.overrides import OverrideState

logger = logging.getLogger(__name__)


@dataclass
class EditorSession:
    """
    Unsaved editor state for one user and one release. Lives in process memory
    until the user saves or it sits idle past the store's TTL; saving sends it
    to the backend, nothing else does.
    """

    release: Release
    catalog: TemplateCatalog
    template: PromoTemplate | None
    overrides: OverrideState = field(default_factory=OverrideState)
    slug: str = ""
    streaming_links: list[StreamingLink] = field(default_factory=list)
    promotion_id: str | None = None
    # Set when a saved templateId no longer exists and another template was substituted.
    missing_template_id: str | None = None

    @property
    def release_id(self) -> str:
        return self.release.id

    @classmethod
    def start(
        cls,
        release: Release,
        catalog: TemplateCatalog,
        promotion: Promotion | None,
        fmt: str | None = None,
    ) -> EditorSession:
        session = cls(
            release=release,
            catalog=catalog,
            template=catalog.default_for_format(fmt),
            slug=sanitize_slug(release.title),
        )
        if promotion is None:
            return session

        session.promotion_id = promotion.id
        session.slug = promotion.slug or session.slug
        session.streaming_links = list(promotion.streaming_links)
        session.overrides = OverrideState.from_customization(promotion.customization)
        saved_id = promotion.customization.template_id
        if not saved_id:
            return session
        resolution = catalog.resolve(saved_id)
        if resolution.substituted:
            if resolution.template is not None:
                session.missing_template_id = saved_id
            return session
        # An explicit format only wins when the saved template is of another format.
        if fmt and not catalog.has_format(resolution.template, fmt):
            session.overrides.switch_template()
            return session
        session.template = resolution.template
        return session

    def switch_template(self, template: PromoTemplate) -> None:
        if self.template is not None and template.id == self.template.id:
            return
        self.overrides.switch_template()
        self.template = template
        self.missing_template_id = None

    def allowed_badges(self) -> list[str] | None:
        if self.template is None:
            return None
        logo = self.template.logo_element()
        return logo.allowed if logo is not None else None

    def to_draft(self) -> PromotionDraft:
        return PromotionDraft(
            release_id=self.release.id,
            slug=self.slug,
            streaming_links=list(self.streaming_links),
            customization=self.overrides.to_customization(self.template.id if self.template else None),
        )


class EditorSessionStore:
    """Sessions keyed by (owner, release). Each read or write refreshes the idle timer."""

    def __init__(self, ttl_seconds: float | None = None, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.editor_session_ttl_seconds
        self._clock = clock
        self._sessions: dict[tuple[str, str], EditorSession] = {}
        self._touched: dict[tuple[str, str], float] = {}

    @staticmethod
    def owner_key(token: str | None) -> str:
        if not token:
            return "anonymous"
        return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]

    def get(self, owner: str, release_id: str) -> EditorSession | None:
        self.sweep()
        key = (owner, release_id)
        session = self._sessions.get(key)
        if session is not None:
            self._touched[key] = self._clock()
        return session

    def put(self, owner: str, session: EditorSession) -> None:
        self.sweep()
        key = (owner, session.release_id)
        self._sessions[key] = session
        self._touched[key] = self._clock()

    def sweep(self) -> int:
        cutoff = self._clock() - self.ttl_seconds
        expired = [k for k, t in self._touched.items() if t <= cutoff]
        for key in expired:
            self._sessions.pop(key, None)
            self._touched.pop(key, None)
        if expired:
            logger.info("dropped %d idle editor sessions", len(expired))
        return len(expired)

    def discard(self, owner: str, release_id: str) -> None:
        self._sessions.pop((owner, release_id), None)
        self._touched.pop((owner, release_id), None)

    def clear(self) -> None:
        self._sessions.clear()
        self._touched.clear()

    def __len__(self) -> int:
        return len(self._sessions)
