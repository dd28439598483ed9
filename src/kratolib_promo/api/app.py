from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator
from urllib.parse import quote, urlencode

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from kratolib_promo.assembly.layout import Composition, ResolvedUrls, compose, fit_scale
from kratolib_promo.assembly.render import ExportError, render_composition
from kratolib_promo.catalog import PLATFORM_BADGES, TemplateCatalog, fallback_templates
from kratolib_promo.config import settings
from kratolib_promo.links import (
    LINK_PLATFORMS,
    DuplicateLinkError,
    UnknownPlatformError,
    active_links,
    add_link,
    badge_for_platform,
    monogram,
    remove_link,
    sanitize_slug,
    update_link,
)
from kratolib_promo.models import BackgroundOverride, PromoTemplate, Release
from kratolib_promo.overrides import OverrideError
from kratolib_promo.providers.base import BackendError, NotFoundError, PromotionBackend, UnauthorizedError
from kratolib_promo.providers.kratolib_api import KratoLibClient
from kratolib_promo.sessions import EditorSession, EditorSessionStore
from kratolib_promo.storage import DisplayUrlResolver, ImageFetcher, UrlCache

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="KratoLib promo studio")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

sessions = EditorSessionStore()
url_cache = UrlCache()
_image_fetcher: ImageFetcher | None = None

PROMOTABLE_STATUSES = ("Released", "Approved")


def _token(request: Request) -> str | None:
    return request.cookies.get(settings.token_cookie) or settings.api_token


async def get_backend(request: Request) -> AsyncIterator[PromotionBackend]:
    client = KratoLibClient(token=_token(request))
    try:
        yield client
    finally:
        await client.aclose()


def get_image_fetcher() -> ImageFetcher:
    global _image_fetcher
    if _image_fetcher is None:
        _image_fetcher = ImageFetcher()
    return _image_fetcher


@app.exception_handler(UnauthorizedError)
async def _unauthorized(request: Request, exc: UnauthorizedError):
    return RedirectResponse(url=settings.login_url, status_code=303)


def _owner(request: Request) -> str:
    return sessions.owner_key(_token(request))


def _redirect(url: str, notice: str | None = None, level: str = "info") -> RedirectResponse:
    if notice:
        url = f"{url}?{urlencode({'notice': notice, 'level': level})}"
    return RedirectResponse(url=url, status_code=303)


def _editor_url(release_id: str) -> str:
    return f"/dashboard/promotion/{release_id}"


def _landing_url(slug: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/p/{slug}"


def _parse_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"'{value}' is not a number")


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


async def _resolve_urls(
    resolver: DisplayUrlResolver,
    template: PromoTemplate | None,
    release: Release | None,
    background_override: BackgroundOverride | None,
    extra_refs: list[str] | None = None,
) -> tuple[ResolvedUrls, dict[str, str]]:
    # Everything resolves concurrently; the compositor applies priority afterwards.
    cover_ref = release.cover_art.url if release else ""
    template_ref = template.background.image if template else ""
    override_ref = background_override.image_url if background_override else ""
    resolved = await resolver.display_urls([cover_ref, template_ref, override_ref, *(extra_refs or [])])
    urls = ResolvedUrls(
        cover=resolved.get(cover_ref, "") if cover_ref else "",
        template_background=resolved.get(template_ref, "") if template_ref else "",
        background_override=resolved.get(override_ref, "") if override_ref else "",
    )
    return urls, resolved


def _composition_for_session(session: EditorSession, urls: ResolvedUrls, scale: float, interactive: bool) -> Composition:
    return compose(
        template=session.template,
        release=session.release,
        element_overrides=session.overrides.element_overrides,
        background_override=session.overrides.background_override,
        urls=urls,
        scale=scale,
        interactive=interactive,
    )


async def _start_session(backend: PromotionBackend, release_id: str, fmt: str | None) -> tuple[EditorSession, list[str]]:
    release, promotion, catalog = await asyncio.gather(
        backend.get_release(release_id),
        backend.get_promotion_by_release(release_id),
        TemplateCatalog.load(backend),
        return_exceptions=True,
    )
    problems: list[str] = []
    for result in (release, promotion, catalog):
        if isinstance(result, UnauthorizedError):
            raise result
    if isinstance(release, BaseException):
        raise release
    if isinstance(promotion, BackendError):
        logger.warning("promotion lookup for release %s failed: %s", release_id, promotion.message)
        promotion = None
    elif isinstance(promotion, BaseException):
        raise promotion
    if isinstance(catalog, BackendError):
        problems.append("Failed to load templates")
        catalog = TemplateCatalog([])
    elif isinstance(catalog, BaseException):
        raise catalog
    return EditorSession.start(release, catalog, promotion, fmt=fmt), problems


def _require_session(request: Request, release_id: str) -> EditorSession:
    session = sessions.get(_owner(request), release_id)
    if session is None:
        raise HTTPException(status_code=409, detail="editor session expired; reload the editor")
    return session


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/")
def index():
    return RedirectResponse(url="/dashboard/promotion", status_code=303)


@app.get("/dashboard/promotion", response_class=HTMLResponse)
async def promotion_listing(
    request: Request,
    notice: str = "",
    level: str = "info",
    backend: PromotionBackend = Depends(get_backend),
):
    try:
        releases = await backend.list_releases()
    except UnauthorizedError:
        raise
    except BackendError as exc:
        logger.warning("release listing failed: %s", exc.message)
        releases = []
        notice, level = "Failed to fetch releases", "error"

    promotable = [r for r in releases if r.status in PROMOTABLE_STATUSES]
    found = await asyncio.gather(
        *(backend.get_promotion_by_release(r.id) for r in promotable),
        return_exceptions=True,
    )
    rows: list[dict[str, Any]] = []
    for release, promo in zip(promotable, found):
        if isinstance(promo, UnauthorizedError):
            raise promo
        if isinstance(promo, BaseException):
            promo = None
        rows.append(
            {
                "release": release,
                "promotion": promo,
                "landing_url": _landing_url(promo.slug) if promo else None,
            }
        )

    return templates.TemplateResponse(
        request=request,
        name="releases.html",
        context={"rows": rows, "notice": notice, "level": level},
    )


@app.get("/dashboard/promotion/{release_id}", response_class=HTMLResponse)
async def editor_page(
    request: Request,
    release_id: str,
    format: str = "",
    notice: str = "",
    level: str = "info",
    backend: PromotionBackend = Depends(get_backend),
):
    owner = _owner(request)
    session = sessions.get(owner, release_id)
    if session is None:
        try:
            session, problems = await _start_session(backend, release_id, format or None)
        except UnauthorizedError:
            raise
        except BackendError as exc:
            logger.warning("editor load for release %s failed: %s", release_id, exc.message)
            return _redirect("/dashboard/promotion", "Failed to load release data", "error")
        sessions.put(owner, session)
        if problems and not notice:
            notice, level = "; ".join(problems), "error"
    elif format and not session.catalog.has_format(session.template, format):
        wanted = session.catalog.default_for_format(format)
        if wanted is not None:
            session.switch_template(wanted)

    if session.missing_template_id and not notice:
        notice = (
            f"Saved template '{session.missing_template_id}' is no longer available; "
            f"showing '{session.template.name}' instead."
        )
        level = "warning"

    resolver = DisplayUrlResolver(backend, url_cache)
    thumbnail_refs = [t.background.image for t in session.catalog]
    urls, resolved = await _resolve_urls(
        resolver,
        session.template,
        session.release,
        session.overrides.background_override,
        extra_refs=thumbnail_refs,
    )

    composition = None
    thumbnails: list[dict[str, Any]] = []
    if session.template is not None:
        preview_width = settings.preview_widths.get(session.template.format, settings.preview_widths["post"])
        composition = _composition_for_session(
            session,
            urls,
            scale=fit_scale(session.template.canvas.width, preview_width),
            interactive=True,
        )
        for template in session.catalog.by_format(session.template.format):
            thumb_urls = ResolvedUrls(
                cover=urls.cover,
                template_background=resolved.get(template.background.image, ""),
                background_override=urls.background_override,
            )
            thumbnails.append(
                {
                    "template": template,
                    "active": template.id == session.template.id,
                    "composition": compose(
                        template=template,
                        release=session.release,
                        element_overrides=session.overrides.element_overrides,
                        background_override=session.overrides.background_override,
                        urls=thumb_urls,
                        scale=fit_scale(template.canvas.width, settings.thumbnail_width),
                        interactive=False,
                    ),
                }
            )

    selected = session.overrides.selected_badges()
    return templates.TemplateResponse(
        request=request,
        name="editor.html",
        context={
            "session": session,
            "composition": composition,
            "thumbnails": thumbnails,
            "badges": [{"badge": b, "selected": b.id in selected} for b in PLATFORM_BADGES],
            "selected_badges": selected,
            "link_platforms": LINK_PLATFORMS,
            "landing_url": _landing_url(session.slug) if session.slug else "",
            "notice": notice,
            "level": level,
        },
    )


@app.post("/dashboard/promotion/{release_id}/reload")
def reload_editor(request: Request, release_id: str):
    sessions.discard(_owner(request), release_id)
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/template")
def switch_template(request: Request, release_id: str, template_id: str = Form(...)):
    session = _require_session(request, release_id)
    template = session.catalog.get(template_id)
    if template is None:
        return _redirect(_editor_url(release_id), f"Unknown template '{template_id}'", "error")
    session.switch_template(template)
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/elements/{element_id}")
def set_element_override(
    request: Request,
    release_id: str,
    element_id: str,
    text: str | None = Form(None),
    x: str | None = Form(None),
    y: str | None = Form(None),
    scale: str | None = Form(None),
    size_width: str | None = Form(None),
    size_height: str | None = Form(None),
    size_option: str | None = Form(None),
    clear_text: str | None = Form(None),
):
    session = _require_session(request, release_id)
    element = session.template.element(element_id) if session.template else None
    if element is None:
        return _redirect(_editor_url(release_id), f"Unknown element '{element_id}'", "error")

    width, height = _parse_float(size_width), _parse_float(size_height)
    if size_option:
        option = next((o for o in (element.size_options or []) if o.label == size_option), None)
        if option is None:
            return _redirect(_editor_url(release_id), f"Unknown size '{size_option}'", "error")
        width, height = option.width, option.height

    scale_value = _parse_float(scale)
    if scale_value is not None and scale_value <= 0:
        return _redirect(_editor_url(release_id), "Scale must be greater than zero", "error")

    session.overrides.set_element_override(
        element_id,
        text=text,
        x=_parse_float(x),
        y=_parse_float(y),
        scale=scale_value,
        size_width=width,
        size_height=height,
    )
    # An empty text box arrives as None, so going back to the derived text needs its own flag.
    if _parse_bool(clear_text):
        session.overrides.clear_element_fields(element_id, "text")
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/badges/{badge_id}/toggle")
def toggle_badge(request: Request, release_id: str, badge_id: str):
    session = _require_session(request, release_id)
    try:
        session.overrides.toggle_badge(badge_id, allowed=session.allowed_badges())
    except OverrideError as exc:
        return _redirect(_editor_url(release_id), str(exc), "error")
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/background")
def set_background(
    request: Request,
    release_id: str,
    image_url: str | None = Form(None),
    use_cover: str | None = Form(None),
    use_default: str | None = Form(None),
    position_x: str | None = Form(None),
    position_y: str | None = Form(None),
    scale: str | None = Form(None),
    blur: str | None = Form(None),
):
    session = _require_session(request, release_id)
    overrides = session.overrides

    if _parse_bool(use_default):
        overrides.clear_background_image()
    elif _parse_bool(use_cover):
        overrides.set_background(image_url=session.release.cover_art.url or None)
    elif image_url is not None and image_url.strip():
        overrides.set_background(image_url=image_url.strip())

    position: dict[str, float] = {}
    px, py = _parse_float(position_x), _parse_float(position_y)
    if px is not None:
        position["x"] = px
    if py is not None:
        position["y"] = py
    blur_value = _parse_float(blur)
    if blur_value is not None and blur_value < 0:
        return _redirect(_editor_url(release_id), "Blur cannot be negative", "error")
    overrides.set_background(position=position or None, scale=_parse_float(scale), blur=blur_value)
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/reset")
def reset_layout(request: Request, release_id: str):
    session = _require_session(request, release_id)
    session.overrides.reset_layout()
    return _redirect(_editor_url(release_id), "Layout reset to template defaults")


@app.post("/dashboard/promotion/{release_id}/slug")
def set_slug(request: Request, release_id: str, slug: str = Form("")):
    session = _require_session(request, release_id)
    cleaned = sanitize_slug(slug)
    if not cleaned:
        return _redirect(_editor_url(release_id), "Slug needs at least one letter or digit", "error")
    session.slug = cleaned
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/links")
def add_streaming_link(request: Request, release_id: str, platform_id: str = Form(...)):
    session = _require_session(request, release_id)
    try:
        session.streaming_links = add_link(session.streaming_links, platform_id)
    except (DuplicateLinkError, UnknownPlatformError) as exc:
        return _redirect(_editor_url(release_id), str(exc), "error")
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/links/{index}")
def update_streaming_link(
    request: Request,
    release_id: str,
    index: int,
    url: str | None = Form(None),
    is_active: str | None = Form(None),
):
    session = _require_session(request, release_id)
    try:
        session.streaming_links = update_link(
            session.streaming_links,
            index,
            url=url,
            is_active=_parse_bool(is_active),
        )
    except IndexError:
        raise HTTPException(status_code=404, detail="streaming link not found")
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/links/{index}/delete")
def delete_streaming_link(request: Request, release_id: str, index: int):
    session = _require_session(request, release_id)
    session.streaming_links = remove_link(session.streaming_links, index)
    return _redirect(_editor_url(release_id))


@app.post("/dashboard/promotion/{release_id}/save")
async def save_promotion(request: Request, release_id: str, backend: PromotionBackend = Depends(get_backend)):
    session = _require_session(request, release_id)
    if not session.slug:
        return _redirect(_editor_url(release_id), "Set a landing page slug before saving", "error")
    try:
        saved = await backend.save_promotion(session.to_draft())
    except UnauthorizedError:
        raise
    except BackendError as exc:
        return _redirect(_editor_url(release_id), exc.message or "Failed to save promotion", "error")
    slug = saved.slug or session.slug
    # The backend now holds this state; the next visit rehydrates from it.
    sessions.discard(_owner(request), release_id)
    logger.info("saved promotion %s for release %s", saved.id, release_id)
    return _redirect(_editor_url(release_id), f"Saved. Your landing page: {_landing_url(slug)}", "success")


@app.get("/dashboard/promotion/{release_id}/composition.json")
async def composition_json(request: Request, release_id: str, backend: PromotionBackend = Depends(get_backend)):
    session = _require_session(request, release_id)
    if session.template is None:
        raise HTTPException(status_code=404, detail="no template selected")
    resolver = DisplayUrlResolver(backend, url_cache)
    urls, _ = await _resolve_urls(resolver, session.template, session.release, session.overrides.background_override)
    composition = _composition_for_session(session, urls, scale=1.0, interactive=True)
    return JSONResponse(composition.to_dict())


@app.get("/dashboard/promotion/{release_id}/export.png")
async def export_png(
    request: Request,
    release_id: str,
    backend: PromotionBackend = Depends(get_backend),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
):
    session = _require_session(request, release_id)
    if session.template is None:
        return _redirect(_editor_url(release_id), "Select a template first", "error")

    resolver = DisplayUrlResolver(backend, url_cache)
    urls, resolved = await _resolve_urls(resolver, session.template, session.release, session.overrides.background_override)
    composition = _composition_for_session(session, urls, scale=1.0, interactive=False)
    try:
        png = await _render_png(composition, fetcher, resolved)
    except ExportError as exc:
        logger.warning("export for release %s failed: %s", release_id, exc)
        return _redirect(_editor_url(release_id), "Failed to generate image", "error")

    filename = f"{session.release.title}-{session.template.id}.png"
    return Response(content=png, media_type="image/png", headers=_attachment_headers(filename))


@app.post("/admin/promo-templates/seed")
async def seed_templates(return_to: str = Form(""), backend: PromotionBackend = Depends(get_backend)):
    target = return_to if return_to.startswith("/dashboard/") and ".." not in return_to else "/dashboard/promotion"
    try:
        seeded = await backend.seed_templates(fallback_templates())
    except UnauthorizedError:
        raise
    except BackendError as exc:
        return _redirect(target, exc.message or "Failed to seed templates", "error")
    logger.info("seeded %d promo templates", len(seeded))
    return _redirect(target, f"Seeded {len(seeded)} templates", "success")


@app.get("/p/{slug}", response_class=HTMLResponse)
async def public_page(request: Request, slug: str, backend: PromotionBackend = Depends(get_backend)):
    try:
        promotion = await backend.get_public_promotion(slug)
    except NotFoundError:
        return templates.TemplateResponse(
            request=request, name="not_found.html", context={"title": "Page not found"}, status_code=404
        )
    except BackendError as exc:
        logger.warning("public page %s failed: %s", slug, exc.message)
        return templates.TemplateResponse(
            request=request, name="not_found.html", context={"title": "Something went wrong"}, status_code=502
        )

    composition, _ = await _public_composition(backend, promotion, scale=None)
    backdrop_url = ""
    if composition is not None:
        backdrop_url = next(
            (el.image_url for el in composition.elements if el.kind == "cover" and el.image_url),
            composition.background.image_url,
        )
    links = [
        {"link": link, "badge": badge_for_platform(link.platform), "monogram": monogram(link.platform)}
        for link in active_links(promotion.streaming_links)
    ]
    return templates.TemplateResponse(
        request=request,
        name="public.html",
        context={
            "promotion": promotion,
            "release": promotion.release,
            "composition": composition,
            "backdrop_url": backdrop_url,
            "links": links,
            "has_links": bool(promotion.streaming_links),
            "slug": slug,
        },
    )


@app.get("/p/{slug}/creative.png")
async def public_creative(
    slug: str,
    backend: PromotionBackend = Depends(get_backend),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
):
    try:
        promotion = await backend.get_public_promotion(slug)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Page not found")
    except BackendError:
        raise HTTPException(status_code=502, detail="Something went wrong")
    composition, resolved = await _public_composition(backend, promotion, scale=1.0)
    if composition is None:
        raise HTTPException(status_code=404, detail="no creative for this page")
    try:
        png = await _render_png(composition, fetcher, resolved)
    except ExportError as exc:
        logger.warning("public creative %s failed: %s", slug, exc)
        raise HTTPException(status_code=502, detail="Failed to generate image")
    return Response(content=png, media_type="image/png")


async def _public_composition(
    backend: PromotionBackend,
    promotion,
    scale: float | None,
) -> tuple[Composition | None, dict[str, str]]:
    try:
        catalog = await TemplateCatalog.load(backend)
    except BackendError as exc:
        logger.warning("template catalog unavailable for public page: %s", exc.message)
        return None, {}
    customization = promotion.customization
    template = catalog.resolve(customization.template_id).template
    if template is None:
        return None, {}
    resolver = DisplayUrlResolver(backend, url_cache)
    urls, resolved = await _resolve_urls(resolver, template, promotion.release, customization.background_override)
    composition = compose(
        template=template,
        release=promotion.release,
        element_overrides=customization.element_overrides,
        background_override=customization.background_override,
        urls=urls,
        scale=scale if scale is not None else fit_scale(template.canvas.width, settings.public_width),
        interactive=False,
    )
    return composition, resolved


async def _render_png(composition: Composition, fetcher: ImageFetcher, resolved: dict[str, str]) -> bytes:
    # Cache downloads under the storage reference, not the rotating signed URL.
    cache_keys = {url: ref for ref, url in resolved.items() if url and url != ref}
    images, failures = await fetcher.fetch_many(composition.image_urls(), cache_keys=cache_keys)
    if failures:
        logger.info("rendering with %d unavailable images", len(failures))
    return render_composition(composition, images).to_png_bytes()


def _attachment_headers(filename: str) -> dict[str, str]:
    ascii_name = filename.encode("ascii", "ignore").decode("ascii").replace('"', "").replace("\\", "") or "creative.png"
    return {"Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"}
