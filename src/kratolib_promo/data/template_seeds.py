# Built-in promo templates, in backend wire format.
# Served when the backend catalog is empty and posted by the seed action.


def _text(element_id, source, x, y, font, size, color):
    return {
        "id": element_id,
        "type": "text",
        "source": source,
        "position": {"x": x, "y": y},
        "style": {"font": font, "size": size, "color": color, "align": "center"},
    }


def _cover(x, y, side, radius):
    return {
        "id": "cover",
        "type": "image",
        "source": "cover_art",
        "position": {"x": x, "y": y},
        "size": {"width": side, "height": side},
        "radius": radius,
    }


def _logo(x, y, side):
    return {
        "id": "logo",
        "type": "image",
        "source": "platform_logo",
        "position": {"x": x, "y": y},
        "sizeOptions": [{"label": "std", "width": side, "height": side}],
    }


def _bg(template_id):
    return {"image": f"s3://promo-templates/{template_id}/bg.png"}


PROMO_TEMPLATE_SEEDS = [
    {
        "id": "classic_story",
        "name": "Classic Story",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": {
            "image": "s3://promo-templates/classic_story/bg.png",
            "video": "s3://promo-templates/classic_story/bg.mp4",
        },
        "elements": [
            {
                **_text("header", "custom_text", 540, 150, "Inter-Bold", 48, "#ffffff"),
                "animation": {"mp4": {"type": "fade_in", "start": 0, "duration": 0.6}},
            },
            {
                **_cover(140, 300, 800, 24),
                "animation": {"mp4": {"type": "zoom_in", "start": 0.2, "duration": 0.8}},
            },
            {
                **_text("artist_name", "artist_name", 540, 1150, "Inter-Bold", 64, "#ffffff"),
                "animation": {"mp4": {"type": "slide_up", "start": 0.6, "duration": 0.6}},
            },
            {
                **_text("track_name", "track_name", 540, 1230, "Inter-Regular", 44, "#cccccc"),
                "animation": {"mp4": {"type": "slide_up", "start": 0.8, "duration": 0.6}},
            },
            {
                "id": "logo",
                "type": "image",
                "source": "platform_logo",
                "position": {"x": 440, "y": 1400},
                "sizeOptions": [
                    {"label": "small", "width": 100, "height": 100},
                    {"label": "medium", "width": 200, "height": 200},
                    {"label": "large", "width": 300, "height": 300},
                ],
            },
        ],
    },
    {
        "id": "modern_square",
        "name": "Modern Square",
        "format": "post",
        "canvas": {"width": 1080, "height": 1080},
        "background": _bg("modern_square"),
        "elements": [
            _cover(240, 100, 600, 12),
            _text("artist_name", "artist_name", 540, 750, "Inter-Bold", 54, "#ffffff"),
            _text("track_name", "track_name", 540, 820, "Inter-Regular", 36, "#aaaaaa"),
            _text("header", "custom_text", 540, 900, "Inter-Bold", 40, "#1DB954"),
            _logo(440, 960, 200),
        ],
    },
    {
        "id": "portrait_post",
        "name": "Portrait Post",
        "format": "post",
        "canvas": {"width": 1080, "height": 1350},
        "background": _bg("portrait_post"),
        "elements": [
            _cover(140, 100, 800, 40),
            _text("header", "custom_text", 540, 950, "Inter-Bold", 48, "#ffffff"),
            _text("artist_name", "artist_name", 540, 1030, "Inter-Bold", 60, "#ffffff"),
            _text("track_name", "track_name", 540, 1100, "Inter-Regular", 40, "#999999"),
            _logo(440, 1200, 180),
        ],
    },
    {
        "id": "cinematic_banner",
        "name": "Cinematic Banner",
        "format": "post",
        "canvas": {"width": 1920, "height": 1080},
        "background": _bg("cinematic_banner"),
        "elements": [
            _cover(200, 140, 800, 20),
            _text("header", "custom_text", 1400, 300, "Inter-Bold", 48, "#1DB954"),
            _text("artist_name", "artist_name", 1400, 400, "Inter-Bold", 80, "#ffffff"),
            _text("track_name", "track_name", 1400, 500, "Inter-Bold", 50, "#ffffff"),
            _logo(1300, 650, 250),
        ],
    },
    {
        "id": "minimalist_story",
        "name": "Minimalist Story",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("minimalist_story"),
        "elements": [
            _cover(340, 400, 400, 200),
            _text("artist_name", "artist_name", 540, 850, "Inter-Bold", 40, "#ffffff"),
            _text("track_name", "track_name", 540, 920, "Inter-Light", 30, "#888888"),
            _text("header", "custom_text", 540, 200, "Inter-Light", 32, "#ffffff"),
            _logo(440, 1600, 120),
        ],
    },
    {
        "id": "story_vertical_stack",
        "name": "Story - Vertical Stack",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("story_vertical_stack"),
        "elements": [
            _cover(100, 200, 880, 0),
            _text("header", "custom_text", 540, 1150, "Inter-Bold", 54, "#1DB954"),
            _text("artist_name", "artist_name", 540, 1250, "Inter-Bold", 72, "#ffffff"),
            _text("track_name", "track_name", 540, 1350, "Inter-Regular", 48, "#ffffff"),
            _logo(415, 1550, 250),
        ],
    },
    {
        "id": "story_floating_card",
        "name": "Story - Floating Card",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("story_floating_card"),
        "elements": [
            _cover(140, 400, 800, 32),
            _text("header", "custom_text", 540, 250, "Inter-Bold", 40, "#ffffff"),
            _text("artist_name", "artist_name", 540, 1300, "Inter-Bold", 64, "#ffffff"),
            _text("track_name", "track_name", 540, 1380, "Inter-Regular", 44, "#cccccc"),
            _logo(440, 1550, 200),
        ],
    },
    {
        "id": "story_blurred_glass",
        "name": "Story - Blurred Glass",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("story_blurred_glass"),
        "elements": [
            _cover(190, 350, 700, 350),
            _text("artist_name", "artist_name", 540, 1100, "Inter-Bold", 56, "#ffffff"),
            _text("track_name", "track_name", 540, 1180, "Inter-Regular", 38, "#dddddd"),
            _text("header", "custom_text", 540, 200, "Inter-Bold", 44, "#1DB954"),
            _logo(440, 1600, 200),
        ],
    },
    {
        "id": "story_split_reveal",
        "name": "Story - Split Reveal",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("story_split_reveal"),
        "elements": [
            _cover(0, 0, 1080, 0),
            _text("header", "custom_text", 540, 1150, "Inter-Bold", 60, "#ffffff"),
            _text("artist_name", "artist_name", 540, 1300, "Inter-Bold", 72, "#ffffff"),
            _text("track_name", "track_name", 540, 1400, "Inter-Regular", 48, "#aaaaaa"),
            _logo(440, 1600, 200),
        ],
    },
    {
        "id": "story_bold_typography",
        "name": "Story - Bold Typography",
        "format": "story",
        "canvas": {"width": 1080, "height": 1920},
        "background": _bg("story_bold_typography"),
        "elements": [
            _text("artist_name", "artist_name", 540, 400, "Inter-Bold", 120, "#ffffff"),
            _text("track_name", "track_name", 540, 550, "Inter-Bold", 80, "#1DB954"),
            _cover(290, 750, 500, 12),
            _text("header", "custom_text", 540, 1400, "Inter-Bold", 48, "#ffffff"),
            _logo(440, 1600, 200),
        ],
    },
]
