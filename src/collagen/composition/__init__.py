from collagen.composition.engine import EngineState, PlacementEngine
from collagen.composition.geometry import intersection_over_union
from collagen.composition.occlusion import HEAD_OVERLAP_TOLERANCE, head_rect, overlaps_any_head
from collagen.composition.renderer import CanvasRenderer, Renderer, draw_anchors

__all__ = [
    "HEAD_OVERLAP_TOLERANCE",
    "CanvasRenderer",
    "EngineState",
    "PlacementEngine",
    "Renderer",
    "draw_anchors",
    "head_rect",
    "intersection_over_union",
    "overlaps_any_head",
]
