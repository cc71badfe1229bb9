from __future__ import annotations

import itertools
import random
from dataclasses import replace
from io import BytesIO
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from collagen.composition.engine import EngineState, PlacementEngine
from collagen.composition.geometry import intersection_over_union
from collagen.composition.occlusion import HEAD_OVERLAP_TOLERANCE, head_rect
from collagen.errors import ConfigurationError, InputError
from collagen.models import ImageCandidate, PlacementConfig, Rect, SourceImage
from collagen.progress import RecordingProgressReporter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ScriptedRandom(random.Random):
    """Random source that replays a fixed sequence from ``random()``."""

    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self._values = iter(values)

    def random(self) -> float:
        return next(self._values)


class RecordingRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[Image.Image, Rect, float]] = []

    def draw(self, image: Image.Image, rect: Rect, angle_degrees: float) -> None:
        self.calls.append((image, rect, angle_degrees))


def _config(**overrides) -> PlacementConfig:
    base = PlacementConfig(
        canvas_width=100,
        canvas_height=100,
        image_count=10,
        min_size=10,
        max_size=20,
        max_iou=1.0,
        max_attempts=10,
        rotation_min=0.0,
        rotation_max=0.0,
        head_ratio=0.0,
    )
    return replace(base, **overrides)


def _candidate(name: str = "img", w: int = 10, h: int = 10, layer="foreground") -> ImageCandidate:
    return ImageCandidate(name=name, image=Image.new("RGBA", (w, h), (0, 0, 255, 255)), layer=layer)


def _candidates(n: int, **kwargs) -> list[ImageCandidate]:
    return [_candidate(f"img{i}", **kwargs) for i in range(n)]


def _engine(config: PlacementConfig, **kwargs) -> PlacementEngine:
    kwargs.setdefault("progress", RecordingProgressReporter())
    kwargs.setdefault("rng", random.Random(1234))
    return PlacementEngine(config, yield_delay=0, **kwargs)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfigValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"canvas_width": 0},
            {"canvas_height": -5},
            {"image_count": 0},
            {"min_size": 0},
            {"min_size": 20, "max_size": 20},
            {"min_size": 30, "max_size": 20},
            {"max_iou": 1.5},
            {"max_iou": -0.1},
            {"max_attempts": 0},
            {"rotation_min": 10.0, "rotation_max": -10.0},
            {"head_ratio": 1.01},
        ],
    )
    def test_invalid_config_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            PlacementEngine(_config(**overrides))

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            _config(min_size=50, max_size=10).validate()

    def test_canvas_smaller_than_min_size_is_accepted(self):
        _config(canvas_width=5, canvas_height=5).validate()


# ---------------------------------------------------------------------------
# place
# ---------------------------------------------------------------------------


class TestPlace:
    async def test_tiny_images_all_placed(self):
        config = _config(min_size=1, max_size=2, max_attempts=1, image_count=3)
        result = await _engine(config).place([], _candidates(3, w=1, h=1))
        assert result.placed_count == 3
        assert result.shortfall == 0

    async def test_full_canvas_images_without_overlap_places_one(self):
        config = _config(min_size=100, max_size=101, max_iou=0.0, max_attempts=5, image_count=2)
        result = await _engine(config).place([], _candidates(2))
        assert result.total == 2
        assert result.placed_count == 1
        assert result.shortfall == 1
        assert result.placements[0].rect == Rect(0, 0, 100, 100)

    async def test_full_head_band_rejects_overlap_allowed_by_iou(self):
        # Sequence per attempt: size, x, y, angle. Size is always 20 and x = floor(r * 80).
        script = [
            0.0, 0.0, 0.0, 0.0,   # first image at (0, 0)
            0.0, 0.05, 0.0, 0.0,  # second image at (4, 0): overlaps the first
            0.0, 0.5, 0.0, 0.0,   # second image at (40, 0): clear
        ]
        config = _config(min_size=20, max_size=21, max_iou=1.0, max_attempts=2, head_ratio=1.0)
        result = await _engine(config, rng=ScriptedRandom(script)).place([], _candidates(2))

        assert [p.rect for p in result.placements] == [Rect(0, 0, 20, 20), Rect(40, 0, 20, 20)]
        overlap = intersection_over_union(Rect(0, 0, 20, 20), Rect(4, 0, 20, 20))
        assert HEAD_OVERLAP_TOLERANCE < overlap <= config.max_iou

    async def test_same_overlap_accepted_without_head_band(self):
        script = [0.0, 0.0, 0.0, 0.0, 0.0, 0.05, 0.0, 0.0]
        config = _config(min_size=20, max_size=21, max_iou=1.0, max_attempts=1, head_ratio=0.0)
        result = await _engine(config, rng=ScriptedRandom(script)).place([], _candidates(2))
        assert [p.rect for p in result.placements] == [Rect(0, 0, 20, 20), Rect(4, 0, 20, 20)]

    async def test_placed_rectangles_respect_max_iou_and_heads(self):
        config = _config(
            canvas_width=400,
            canvas_height=400,
            image_count=40,
            min_size=20,
            max_size=60,
            max_iou=0.1,
            max_attempts=50,
            head_ratio=0.2,
        )
        result = await _engine(config, rng=random.Random(42)).place([], _candidates(40))
        rects = [p.rect for p in result.placements]

        assert result.placed_count > 1
        for a, b in itertools.combinations(rects, 2):
            assert intersection_over_union(a, b) <= config.max_iou
        for i, later in enumerate(rects):
            for earlier in rects[:i]:
                overlap = intersection_over_union(later, head_rect(earlier, config.head_ratio))
                assert overlap <= HEAD_OVERLAP_TOLERANCE

    async def test_placements_fit_canvas_and_keep_aspect_ratio(self):
        config = _config(canvas_width=300, canvas_height=200, min_size=20, max_size=80)
        result = await _engine(config).place([], _candidates(10, w=40, h=30))
        for placement in result.placements:
            rect = placement.rect
            assert config.min_size <= rect.w < config.max_size
            assert rect.h == pytest.approx(rect.w * 30 / 40)
            assert rect.x >= 0 and rect.y >= 0
            assert rect.right <= config.canvas_width
            assert rect.bottom <= config.canvas_height

    async def test_angles_within_rotation_range(self):
        config = _config(rotation_min=-30.0, rotation_max=45.0)
        result = await _engine(config).place([], _candidates(10))
        assert result.placed_count == 10
        for placement in result.placements:
            assert -30.0 <= placement.angle_degrees <= 45.0

    async def test_image_larger_than_canvas_is_skipped(self):
        config = _config(canvas_width=5, canvas_height=5, min_size=10, max_size=20)
        result = await _engine(config).place([], _candidates(2))
        assert result.placed_count == 0
        assert result.total == 2

    async def test_tall_image_that_does_not_fit_is_skipped(self):
        config = _config(min_size=50, max_size=60)
        result = await _engine(config).place([], [_candidate(w=10, h=40)])
        assert result.placed_count == 0

    async def test_count_bounded_by_image_count(self):
        config = _config(image_count=3)
        result = await _engine(config).place([], _candidates(8))
        assert result.total == 3
        assert 0 <= result.placed_count <= 3

    async def test_only_first_candidates_are_attempted(self):
        # The first candidate never fits; the second would, but is beyond image_count.
        config = _config(image_count=1, min_size=50, max_size=60)
        candidates = [_candidate("tall", w=10, h=40), _candidate("square")]
        result = await _engine(config).place([], candidates)
        assert result.total == 1
        assert result.placed_count == 0

    async def test_background_candidates_come_first(self):
        background = [_candidate("bg0", layer="background"), _candidate("bg1", layer="background")]
        foreground = [_candidate("fg0")]
        result = await _engine(_config()).place(background, foreground)
        assert [p.candidate.name for p in result.placements] == ["bg0", "bg1", "fg0"]

    async def test_empty_candidates_produce_empty_result(self):
        result = await _engine(_config()).place([], [])
        assert result.total == 0
        assert result.placements == []

    async def test_renderer_receives_each_accepted_placement(self):
        renderer = RecordingRenderer()
        config = _config(min_size=100, max_size=101, max_iou=0.0, max_attempts=3, image_count=3)
        candidates = _candidates(3)
        result = await _engine(config, renderer=renderer).place([], candidates)

        assert len(renderer.calls) == result.placed_count == 1
        image, rect, angle = renderer.calls[0]
        assert image is candidates[0].image
        assert rect == result.placements[0].rect
        assert angle == result.placements[0].angle_degrees

    async def test_state_transitions(self):
        engine = _engine(_config())
        assert engine.state is EngineState.IDLE
        await engine.place([], _candidates(2))
        assert engine.state is EngineState.DONE

    async def test_seeded_runs_are_reproducible(self):
        config = _config(max_iou=0.2, head_ratio=0.3)
        first = await _engine(config, rng=random.Random(9)).place([], _candidates(6))
        second = await _engine(config, rng=random.Random(9)).place([], _candidates(6))
        assert [p.rect for p in first.placements] == [p.rect for p in second.placements]


# ---------------------------------------------------------------------------
# Progress and yielding
# ---------------------------------------------------------------------------


class TestProgress:
    async def test_one_update_per_candidate(self):
        progress = RecordingProgressReporter()
        config = _config(image_count=4)
        await _engine(config, progress=progress).place([], _candidates(4))
        assert progress.percents == [25, 50, 75, 100]

    async def test_skipped_candidate_still_reports(self):
        progress = RecordingProgressReporter()
        config = _config(min_size=100, max_size=101, max_iou=0.0, max_attempts=4, image_count=2)
        await _engine(config, progress=progress).place([], _candidates(2))
        assert progress.percents == [50, 50]

    async def test_percent_is_floored(self):
        progress = RecordingProgressReporter()
        await _engine(_config(image_count=3), progress=progress).place([], _candidates(3))
        assert progress.percents == [33, 66, 100]

    async def test_yields_once_per_candidate(self):
        config = _config(image_count=5, max_attempts=20)
        with patch("collagen.composition.engine.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await _engine(config).place([], _candidates(5))
        assert sleep.await_count == 5


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


def _png_source(name: str) -> SourceImage:
    buf = BytesIO()
    Image.new("RGB", (16, 16), "green").save(buf, format="PNG")
    return SourceImage(name=name, data=buf.getvalue(), content_type="image/png")


class TestGenerate:
    async def test_generate_reports_stages(self):
        progress = RecordingProgressReporter()
        engine = _engine(_config(image_count=2), progress=progress)
        result = await engine.generate([_png_source("a.png"), _png_source("b.png")])

        assert result.placed_count == 2
        assert progress.percents == [5, 10, 50, 100, 100]
        assert engine.state is EngineState.DONE

    async def test_generate_routes_opaque_pngs_to_background(self):
        engine = _engine(_config(non_transparent_png_bottom=True))
        result = await engine.generate([_png_source("a.png")])
        assert result.placements[0].candidate.layer == "background"

    async def test_generate_without_images_raises(self):
        engine = _engine(_config())
        note = SourceImage(name="readme.txt", data=b"text", content_type="text/plain")
        with pytest.raises(InputError):
            await engine.generate([note])
        assert engine.state is EngineState.IDLE

    async def test_generate_with_no_sources_raises(self):
        with pytest.raises(InputError):
            await _engine(_config()).generate([])
