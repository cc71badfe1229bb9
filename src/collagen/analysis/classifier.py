from __future__ import annotations

import mimetypes
from io import BytesIO

import numpy as np
from loguru import logger
from PIL import Image

from collagen.models import ImageCandidate, Layer, SourceImage


def has_transparency(image: Image.Image) -> bool:
    """Return ``True`` if any pixel of ``image`` is less than fully opaque.

    The image is rendered to RGBA and its whole alpha channel is scanned, so
    palette images with a transparent index are detected too.
    """
    alpha = np.asarray(image.convert("RGBA"))[..., 3]
    return bool((alpha < 255).any())


def classify(
    sources: list[SourceImage],
    bottom_rule_policy: bool,
) -> tuple[list[ImageCandidate], list[ImageCandidate]]:
    """Split sources into a background layer and a foreground layer.

    An image is routed to the background only when ``bottom_rule_policy`` is
    enabled, its file name ends in ``.png`` and it has no transparent pixel.
    Everything else goes to the foreground. Non-image items are skipped
    silently; images Pillow cannot decode are skipped with a warning.

    Args:
        sources: Raw inputs in the order they were supplied.
        bottom_rule_policy: Whether opaque PNGs go to the background layer.

    Returns:
        ``(background, foreground)`` candidate lists, each in input order.
    """
    background: list[ImageCandidate] = []
    foreground: list[ImageCandidate] = []

    for source in sources:
        if not _is_image(source):
            logger.debug("Skipping non-image source {!r}", source.name)
            continue

        image = _decode(source)
        if image is None:
            continue

        transparent = has_transparency(image)
        is_png = source.name.lower().endswith(".png")
        layer: Layer = (
            "background" if bottom_rule_policy and is_png and not transparent else "foreground"
        )
        candidate = ImageCandidate(
            name=source.name,
            image=image,
            layer=layer,
            has_transparency=transparent,
        )
        (background if layer == "background" else foreground).append(candidate)
        logger.debug(
            "  {!r} {}x{} transparent={} -> {}",
            source.name,
            image.width,
            image.height,
            transparent,
            layer,
        )

    return background, foreground


def _is_image(source: SourceImage) -> bool:
    content_type = source.content_type or mimetypes.guess_type(source.name)[0] or ""
    return content_type.startswith("image/")


def _decode(source: SourceImage) -> Image.Image | None:
    """Decode a source to a fully loaded PIL image, or ``None`` if Pillow rejects it."""
    try:
        image = Image.open(BytesIO(source.data))
        image.load()
    except Exception as exc:
        logger.warning("Could not decode {!r}: {}", source.name, exc)
        return None
    return image
