from __future__ import annotations

from collagen.models import Rect


def intersection_over_union(a: Rect, b: Rect) -> float:
    """Return the IoU of two axis-aligned rectangles.

    Args:
        a: First rectangle.
        b: Second rectangle.

    Returns:
        Intersection area divided by union area, in ``[0, 1]``. ``0.0`` when
        the rectangles do not overlap, including degenerate ones.
    """
    x1 = max(a.x, b.x)
    y1 = max(a.y, b.y)
    x2 = min(a.right, b.right)
    y2 = min(a.bottom, b.bottom)

    intersection = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    if intersection == 0:
        return 0.0

    return intersection / (a.area + b.area - intersection)
