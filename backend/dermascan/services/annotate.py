from __future__ import annotations

import logging
from io import BytesIO
from typing import Callable

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

from dermascan.analysis.geometry import overlay_rects
from dermascan.analysis.models import AnalysisResult, ImageRef
from dermascan.analysis.presentation import nothing_active

logger = logging.getLogger(__name__)

BOX_COLOR = (239, 68, 68)
ACTIVE_COLOR = (96, 165, 250)
LABEL_BACKGROUND = (15, 23, 42)
LABEL_TEXT = (255, 255, 255)


class AnnotationError(ValueError):
    """The uploaded bytes could not be decoded as an image."""


def render_annotated_image(
    image: ImageRef,
    result: AnalysisResult | None,
    is_active: Callable[[str], bool] = nothing_active,
) -> bytes:
    """
    Draw the overlay rectangles onto the photo and return PNG bytes.

    Degenerate rectangles (zero or negative size) are not drawn. The active
    finding is drawn last, in the highlight colour, with its label above.
    """
    try:
        with Image.open(BytesIO(image.data)) as source:
            canvas = ImageOps.exif_transpose(source).convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise AnnotationError(f"Cannot decode {image.filename}: {exc}") from exc

    if result is not None:
        width, height = canvas.size
        stroke = max(2, round(min(width, height) / 250))
        draw = ImageDraw.Draw(canvas)
        categories = {finding.id: finding.category for finding in result.findings}
        rects = overlay_rects(result.findings)
        # Active box on top of the others.
        rects.sort(key=lambda item: is_active(item[0]))
        for finding_id, rect in rects:
            if rect.is_degenerate:
                logger.debug("Skipping degenerate box for %s", finding_id)
                continue
            active = is_active(finding_id)
            box = rect.to_pixels(width, height)
            draw.rectangle(box, outline=ACTIVE_COLOR if active else BOX_COLOR, width=stroke)
            if active and categories.get(finding_id):
                _draw_label(draw, categories[finding_id], box)

    buffer = BytesIO()
    canvas.save(buffer, format="PNG")
    return buffer.getvalue()


def _draw_label(draw: ImageDraw.ImageDraw, text: str, box: tuple[float, float, float, float]) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text)
    text_width = right - left
    text_height = bottom - top
    x = (box[0] + box[2]) / 2 - text_width / 2
    y = max(0.0, box[1] - text_height - 8)
    draw.rectangle((x - 4, y - 2, x + text_width + 4, y + text_height + 4), fill=LABEL_BACKGROUND)
    draw.text((x, y), text, fill=LABEL_TEXT)
