from __future__ import annotations

from collections.abc import Iterable

from collagen.composition.geometry import intersection_over_union
from collagen.models import Rect

# IoU above which a candidate counts as covering a placed image's head.
HEAD_OVERLAP_TOLERANCE = 0.01


def head_rect(rect: Rect, head_ratio: float) -> Rect:
    """Return the top band of ``rect`` covering ``head_ratio`` of its height."""
    return Rect(rect.x, rect.y, rect.w, rect.h * head_ratio)


def overlaps_any_head(candidate: Rect, placed: Iterable[Rect], head_ratio: float) -> bool:
    """Return ``True`` if ``candidate`` occludes the head band of any placed rectangle.

    Args:
        candidate: Rectangle being considered for placement.
        placed: Rectangles already accepted in this run.
        head_ratio: Fraction of each placed rectangle's height treated as its head.

    Returns:
        ``True`` when the IoU against some head band exceeds
        ``HEAD_OVERLAP_TOLERANCE``.
    """
    return any(
        intersection_over_union(candidate, head_rect(rect, head_ratio)) > HEAD_OVERLAP_TOLERANCE
        for rect in placed
    )
