from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, ImageDraw, ImageEnhance, ImageFilter, ImageFont

from kratolib_promo.assembly.layout import BackgroundLayer, Composition, PlacedElement
from kratolib_promo.config import settings

logger = logging.getLogger(__name__)

BADGE_LOGO_MAX_HEIGHT = 0.8
BADGE_LOGO_BRIGHTNESS = 2.0


class ExportError(RuntimeError):
    pass


@dataclass(frozen=True)
class RenderedCreative:
    image: Image.Image
    fallbacks: list[str] = field(default_factory=list)

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


def render_composition(
    composition: Composition,
    images: dict[str, Image.Image],
    fonts_dir: str | None = None,
) -> RenderedCreative:
    """
    Rasterize a composition at template resolution, then shrink it to the
    composition's display scale (1.0 for exports).

    Background and cover art are required once referenced: a missing one is an
    ExportError, never a half-drawn file. Badge logos degrade to their monogram.
    """
    size = (composition.canvas_width, composition.canvas_height)
    fallbacks: list[str] = []

    bg_url = composition.background.image_url
    if bg_url and bg_url not in images:
        raise ExportError(f"background image unavailable: {bg_url}")
    base = _render_background(size, composition.background, images.get(bg_url) if bg_url else None)

    for el in composition.elements:
        if el.kind == "cover":
            if el.image_url and el.image_url not in images:
                raise ExportError(f"cover art unavailable: {el.image_url}")
            base = _draw_cover(base, el, images.get(el.image_url))
        elif el.kind == "badge":
            logo = images.get(el.badge.logo_url) if el.badge else None
            if el.badge is not None and logo is None:
                fallbacks.append(el.badge.id)
            base = _draw_badge(base, el, logo, fonts_dir)
        elif el.kind == "text":
            base = _draw_text_element(base, el, fonts_dir)

    out = base.convert("RGB")
    if composition.scale != 1.0:
        display = (max(1, composition.display_width), max(1, composition.display_height))
        out = out.resize(display, Image.Resampling.LANCZOS)
    return RenderedCreative(image=out, fallbacks=fallbacks)


def _render_background(size: tuple[int, int], layer: BackgroundLayer, img: Image.Image | None) -> Image.Image:
    w, h = size
    base = Image.new("RGBA", size, (0, 0, 0, 255))
    if img is not None:
        bg = _resize_cover(img.convert("RGB"), size, layer.position_x, layer.position_y)
        bg = _zoom_about_center(bg, layer.scale)
        if layer.blur > 0:
            bg = bg.filter(ImageFilter.GaussianBlur(radius=layer.blur))
        bg = ImageEnhance.Brightness(bg).enhance(layer.brightness)
        base.paste(bg.convert("RGBA"), (0, 0))
    return _apply_vertical_gradient(base, top_alpha=51, bottom_alpha=153)


def _resize_cover(
    img: Image.Image,
    size: tuple[int, int],
    position_x: float = 50,
    position_y: float = 50,
) -> Image.Image:
    """
    Resize to cover the target canvas (no stretching), then crop. The crop
    offset follows background-position percentages: 0 = left/top, 50 = center.
    """
    tw, th = size
    iw, ih = img.size
    if iw <= 0 or ih <= 0:
        return img.resize(size, Image.Resampling.LANCZOS)

    scale = max(tw / iw, th / ih)
    nw, nh = max(tw, round(iw * scale)), max(th, round(ih * scale))
    resized = img.resize((nw, nh), Image.Resampling.LANCZOS)

    left = min(max(0, round((nw - tw) * position_x / 100)), nw - tw)
    top = min(max(0, round((nh - th) * position_y / 100)), nh - th)
    return resized.crop((left, top, left + tw, top + th))


def _zoom_about_center(img: Image.Image, factor: float) -> Image.Image:
    if factor <= 0 or factor == 1:
        return img
    w, h = img.size
    nw, nh = max(1, round(w * factor)), max(1, round(h * factor))
    zoomed = img.resize((nw, nh), Image.Resampling.LANCZOS)
    if factor > 1:
        left = (nw - w) // 2
        top = (nh - h) // 2
        return zoomed.crop((left, top, left + w, top + h))
    # Zooming out exposes the black canvas around the image.
    out = Image.new(img.mode, (w, h), 0)
    out.paste(zoomed, ((w - nw) // 2, (h - nh) // 2))
    return out


def _apply_vertical_gradient(img_rgba: Image.Image, top_alpha: int, bottom_alpha: int) -> Image.Image:
    """
    Black at top_alpha fading to clear at mid-height, then to bottom_alpha at
    the bottom edge.
    """
    w, h = img_rgba.size
    overlay = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    mid = max(1, h // 2)
    for y in range(h):
        if y < mid:
            a = int(top_alpha * (1 - y / mid))
        else:
            a = int(bottom_alpha * ((y - mid) / max(1, h - mid)))
        if a:
            draw.line([(0, y), (w, y)], fill=(0, 0, 0, a))

    return Image.alpha_composite(img_rgba, overlay)


def _scaled_box(el: PlacedElement, natural: tuple[int, int]) -> tuple[int, int, int, int]:
    """Element box after its scale factor is applied around the box center."""
    w = el.width if el.width else natural[0]
    h = el.height if el.height else natural[1]
    sw, sh = w * el.scale, h * el.scale
    left = el.x + (w - sw) / 2
    top = el.y + (h - sh) / 2
    return round(left), round(top), max(1, round(sw)), max(1, round(sh))


def _rounded_mask(size: tuple[int, int], radius: float) -> Image.Image:
    w, h = size
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    r = int(min(radius, w / 2, h / 2))
    if r > 0:
        draw.rounded_rectangle([(0, 0), (w - 1, h - 1)], radius=r, fill=255)
    else:
        draw.rectangle([(0, 0), (w - 1, h - 1)], fill=255)
    return mask


def _draw_cover(base: Image.Image, el: PlacedElement, img: Image.Image | None) -> Image.Image:
    natural = img.size if img is not None else (1, 1)
    left, top, w, h = _scaled_box(el, natural)
    if img is None:
        tile = Image.new("RGBA", (w, h), (40, 40, 40, 255))
    else:
        tile = _resize_cover(img.convert("RGB"), (w, h)).convert("RGBA")
    base.paste(tile, (left, top), _rounded_mask((w, h), el.radius * el.scale))
    return base


def _brighten_keep_alpha(img: Image.Image, factor: float) -> Image.Image:
    rgba = img.convert("RGBA")
    alpha = rgba.getchannel("A")
    rgb = ImageEnhance.Brightness(rgba.convert("RGB")).enhance(factor)
    rgb.putalpha(alpha)
    return rgb


def _draw_badge(
    base: Image.Image,
    el: PlacedElement,
    logo: Image.Image | None,
    fonts_dir: str | None,
) -> Image.Image:
    left, top, w, h = _scaled_box(el, (200, 200))
    if el.badge is None:
        return base

    if logo is None:
        draw = ImageDraw.Draw(base)
        font = _load_font("Inter-Bold", max(8, int(h * 0.3)), fonts_dir)
        text = el.badge.fallback_text
        bbox = draw.textbbox((0, 0), text, font=font)
        tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
        fill = (*_hex_to_rgb(el.badge.color), 255)
        draw.text((left + (w - tw) / 2 - bbox[0], top + (h - th) / 2 - bbox[1]), text, font=font, fill=fill)
        return base

    # Contain-fit: full box width, at most 80% of the box height.
    lw, lh = logo.size
    if lw <= 0 or lh <= 0:
        return base
    fit = min(w / lw, (h * BADGE_LOGO_MAX_HEIGHT) / lh)
    nw, nh = max(1, round(lw * fit)), max(1, round(lh * fit))
    tile = _brighten_keep_alpha(logo.resize((nw, nh), Image.Resampling.LANCZOS), BADGE_LOGO_BRIGHTNESS)
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    layer.paste(tile, (left + (w - nw) // 2, top + (h - nh) // 2))
    return Image.alpha_composite(base, layer)


def _draw_text_element(base: Image.Image, el: PlacedElement, fonts_dir: str | None) -> Image.Image:
    text = (el.text or "").upper()
    if not text:
        return base

    font_px = max(1, int(round(el.font_size * el.scale)))
    font = _load_font(el.font or ("Inter-Black" if el.weight >= 900 else "Inter-Bold"), font_px, fonts_dir)
    draw = ImageDraw.Draw(base)
    bbox = draw.textbbox((0, 0), text, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]

    # x is the alignment anchor: center line, left edge or right edge.
    if el.align == "left":
        x = el.x
    elif el.align == "right":
        x = el.x - tw
    else:
        x = el.x - tw / 2
    # Scaling pivots on the unscaled line's vertical middle.
    unscaled_h = th / el.scale if el.scale else th
    y = el.y + (unscaled_h - th) / 2
    xy = (x - bbox[0], y - bbox[1])

    # Blur only a tile around the text, not the whole canvas.
    pad = 18
    tile = Image.new("RGBA", (int(tw) + 2 * pad, int(th) + 2 * pad + 4), (0, 0, 0, 0))
    ImageDraw.Draw(tile).text((pad - bbox[0], pad - bbox[1] + 4), text, font=font, fill=(0, 0, 0, 204))
    tile = tile.filter(ImageFilter.GaussianBlur(radius=6))
    shadow = Image.new("RGBA", base.size, (0, 0, 0, 0))
    shadow.paste(tile, (round(x) - pad, round(y) - pad))
    base = Image.alpha_composite(base, shadow)

    ImageDraw.Draw(base).text(xy, text, font=font, fill=(*_hex_to_rgb(el.color), 255))
    return base


_FONT_FILES: dict[str, list[str]] = {
    "inter-black": ["Inter-Black.ttf", "Inter-ExtraBold.ttf", "Inter-Bold.ttf"],
    "inter-bold": ["Inter-Bold.ttf", "Inter-SemiBold.ttf"],
    "inter-regular": ["Inter-Regular.ttf"],
    "inter-light": ["Inter-Light.ttf", "Inter-Regular.ttf"],
}

_SYSTEM_FALLBACKS_BOLD = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]

_SYSTEM_FALLBACKS_REGULAR = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/Library/Fonts/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
]

_font_cache: dict[tuple[str, int, str], ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}


def _load_font(name: str | None, size: int, fonts_dir: str | None = None) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Template fonts are named like "Inter-Bold". Probe the bundled fonts dir
    first, then common system fonts of the same weight, then Pillow's default.
    """
    key = (name or "", size, fonts_dir or "")
    if key in _font_cache:
        return _font_cache[key]

    family = (name or "inter-bold").strip().lower()
    bold = not any(w in family for w in ("regular", "light"))
    root = Path(fonts_dir or settings.fonts_dir)
    candidates = [root / f for f in _FONT_FILES.get(family, [f"{name}.ttf"])]
    candidates += [Path(p) for p in (_SYSTEM_FALLBACKS_BOLD if bold else _SYSTEM_FALLBACKS_REGULAR)]

    font: ImageFont.FreeTypeFont | ImageFont.ImageFont | None = None
    for p in candidates:
        if p.exists():
            try:
                font = ImageFont.truetype(str(p), size=size)
                break
            except OSError:
                logger.warning("unreadable font file %s", p)
    if font is None:
        font = ImageFont.load_default(size=size)
    _font_cache[key] = font
    return font


def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    s = (hex_color or "").strip().lstrip("#")
    if len(s) == 3:
        s = "".join([c * 2 for c in s])
    if len(s) != 6:
        return (255, 255, 255)
    try:
        return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
    except ValueError:
        return (255, 255, 255)
