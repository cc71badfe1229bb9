"""collagen: random photo-collage generation with collision-aware placement."""

from dotenv import load_dotenv

load_dotenv()

from collagen.composition.engine import EngineState, PlacementEngine  # noqa: E402
from collagen.errors import CollageError, ConfigurationError, InputError  # noqa: E402
from collagen.models import (  # noqa: E402
    CollageOutput,
    ImageCandidate,
    Placement,
    PlacementConfig,
    PlacementResult,
    Rect,
    SourceImage,
)
from collagen.pipeline import Pipeline  # noqa: E402

__all__ = [
    "CollageError",
    "CollageOutput",
    "ConfigurationError",
    "EngineState",
    "ImageCandidate",
    "InputError",
    "Pipeline",
    "Placement",
    "PlacementConfig",
    "PlacementEngine",
    "PlacementResult",
    "Rect",
    "SourceImage",
]
