from __future__ import annotations

from typing import Protocol

from PIL import Image, ImageDraw

from collagen.composition.occlusion import head_rect
from collagen.models import Placement, Rect


class Renderer(Protocol):
    """Draws accepted placements onto a surface.

    ``draw`` must centre the image on ``rect``, rotate it clockwise by
    ``angle_degrees`` and scale it to exactly ``rect.w`` by ``rect.h``.
    No transform may carry over to the next call.
    """

    def draw(self, image: Image.Image, rect: Rect, angle_degrees: float) -> None: ...


class CanvasRenderer:
    """Pillow renderer that alpha-composites each placement onto an RGBA canvas.

    Args:
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        fill: Initial canvas colour. Defaults to opaque white.
    """

    def __init__(
        self,
        width: int,
        height: int,
        fill: tuple[int, int, int, int] = (255, 255, 255, 255),
    ) -> None:
        self.canvas = Image.new("RGBA", (width, height), fill)

    def draw(self, image: Image.Image, rect: Rect, angle_degrees: float) -> None:
        """Draw ``image`` centred on ``rect`` and rotated by ``angle_degrees``.

        The image is scaled before rotation so the unrotated footprint matches
        ``rect``. Pillow rotates counter-clockwise for positive angles, so the
        angle is negated to keep clockwise-positive canvas semantics. Parts
        that fall outside the canvas are clipped.
        """
        size = (max(1, round(rect.w)), max(1, round(rect.h)))
        scaled = image.convert("RGBA").resize(size, Image.Resampling.LANCZOS)
        rotated = scaled.rotate(-angle_degrees, resample=Image.Resampling.BICUBIC, expand=True)

        cx, cy = rect.center
        left = round(cx - rotated.width / 2)
        top = round(cy - rotated.height / 2)
        self.canvas.paste(rotated, (left, top), mask=rotated.split()[3])

    def to_rgb(self) -> Image.Image:
        return self.canvas.convert("RGB")


def draw_anchors(canvas: Image.Image, placements: list[Placement], head_ratio: float) -> None:
    """Overlay every placement's bounding box and head band onto ``canvas`` in place.

    Args:
        canvas: RGBA canvas the placements were drawn on.
        placements: Accepted placements to visualize.
        head_ratio: Head band ratio used during placement.
    """
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    for placement in placements:
        rect = placement.rect
        head = head_rect(rect, head_ratio)
        if head.h > 0:
            draw.rectangle(
                (head.x, head.y, head.right, head.bottom),
                fill=(255, 64, 64, 80),
            )
        draw.rectangle(
            (rect.x, rect.y, rect.right, rect.bottom),
            outline=(255, 0, 0, 255),
            width=2,
        )
    canvas.alpha_composite(overlay)
