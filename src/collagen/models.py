from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal

from PIL import Image

from collagen.errors import ConfigurationError

Layer = Literal["background", "foreground"]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned box in canvas pixel units.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width. Placement rectangles are always positive; head bands
            derived with a zero ratio may be empty.
        h: Height, same rules as ``w``.
    """

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self) -> None:
        if self.w < 0 or self.h < 0:
            raise ValueError(f"Rect size must be non-negative, got {self.w}x{self.h}")

    @property
    def area(self) -> float:
        return self.w * self.h

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.w / 2, self.y + self.h / 2


@dataclass
class SourceImage:
    """A raw, undecoded input item.

    Attributes:
        name: File name, used for the PNG extension test.
        data: Raw file bytes.
        content_type: MIME type such as ``"image/png"``. Empty when unknown;
            the classifier then guesses it from ``name``.
        origin: Local path or URL the bytes came from. Provenance only.
    """

    name: str
    data: bytes
    content_type: str = ""
    origin: str = ""


@dataclass(frozen=True)
class ImageCandidate:
    """A decoded image eligible for placement.

    Attributes:
        name: File name of the source.
        image: Decoded PIL image.
        layer: Layer membership assigned by the classifier.
        has_transparency: Whether any pixel is less than fully opaque.
    """

    name: str
    image: Image.Image
    layer: Layer
    has_transparency: bool = False

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class PlacementConfig:
    """Parameters for one generation run.

    Attributes:
        canvas_width: Canvas width in pixels.
        canvas_height: Canvas height in pixels.
        image_count: Upper bound on the number of candidates attempted.
        min_size: Smallest draw width, inclusive.
        max_size: Largest draw width, exclusive.
        max_iou: Largest IoU allowed between any two placed rectangles.
        max_attempts: Placement attempts per candidate before it is skipped.
        rotation_min: Lower rotation bound in degrees.
        rotation_max: Upper rotation bound in degrees.
        head_ratio: Fraction of a placed image's height protected as its head.
        non_transparent_png_bottom: Route opaque PNGs to the background layer.
        visualize_anchors: Draw placement outlines and head bands on top.
    """

    canvas_width: int
    canvas_height: int
    image_count: int
    min_size: int
    max_size: int
    max_iou: float
    max_attempts: int
    rotation_min: float
    rotation_max: float
    head_ratio: float
    non_transparent_png_bottom: bool = False
    visualize_anchors: bool = False

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if the configuration cannot drive a run.

        A canvas smaller than ``min_size`` is accepted: every attempt for an
        image that does not fit simply fails.
        """
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ConfigurationError(
                f"canvas must be positive, got {self.canvas_width}x{self.canvas_height}"
            )
        if self.image_count < 1:
            raise ConfigurationError(f"image_count must be >= 1, got {self.image_count}")
        if self.min_size < 1:
            raise ConfigurationError(f"min_size must be >= 1, got {self.min_size}")
        if self.min_size >= self.max_size:
            raise ConfigurationError(
                f"min_size ({self.min_size}) must be less than max_size ({self.max_size})"
            )
        if not 0.0 <= self.max_iou <= 1.0:
            raise ConfigurationError(f"max_iou must be in [0, 1], got {self.max_iou}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.rotation_min > self.rotation_max:
            raise ConfigurationError(
                f"rotation_min ({self.rotation_min}) must not exceed "
                f"rotation_max ({self.rotation_max})"
            )
        if not 0.0 <= self.head_ratio <= 1.0:
            raise ConfigurationError(f"head_ratio must be in [0, 1], got {self.head_ratio}")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Placement:
    """Committed geometry for one placed candidate."""

    candidate: ImageCandidate
    rect: Rect
    angle_degrees: float


@dataclass
class PlacementResult:
    """Outcome of one placement run.

    Attributes:
        placements: Accepted placements in draw order.
        total: Number of candidates attempted.
    """

    placements: list[Placement] = field(default_factory=list)
    total: int = 0

    @property
    def placed_count(self) -> int:
        return len(self.placements)

    @property
    def shortfall(self) -> int:
        """Candidates attempted but never placed. Zero on a full run."""
        return self.total - self.placed_count


@dataclass
class CollageOutput:
    """Final composed collage image with its dimensions and provenance.

    Attributes:
        image: The composed collage as a PIL Image.
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        placement_provenance: One record per placed image, in draw order.
        total: Number of candidates attempted.
    """

    image: Image.Image
    width: int
    height: int
    placement_provenance: list[dict] = field(default_factory=list)
    total: int = 0
