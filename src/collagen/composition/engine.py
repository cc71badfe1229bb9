from __future__ import annotations

import asyncio
import enum
import math
import random

from loguru import logger

from collagen.analysis.classifier import classify
from collagen.composition.geometry import intersection_over_union
from collagen.composition.occlusion import overlaps_any_head
from collagen.composition.renderer import Renderer
from collagen.errors import InputError
from collagen.models import (
    ImageCandidate,
    Placement,
    PlacementConfig,
    PlacementResult,
    Rect,
    SourceImage,
)
from collagen.progress import LoggingProgressReporter, ProgressReporter


class EngineState(enum.Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    PLACING = "placing"
    DONE = "done"


class PlacementEngine:
    """Randomized collage placement with rejection sampling.

    Each candidate gets up to ``config.max_attempts`` random placements. An
    attempt is rejected when its rectangle overlaps an already placed one by
    more than ``config.max_iou`` or covers the head band of one. A candidate
    whose attempts are all rejected is skipped; that is a normal outcome
    reported through ``PlacementResult.shortfall``.

    Candidates are evaluated strictly one after another, and the engine
    yields to the event loop once per candidate so progress updates can be
    observed between them.

    Args:
        config: Run parameters. Validated on construction.
        renderer: Receives every accepted placement. ``None`` runs headless.
        progress: Progress sink. Defaults to ``LoggingProgressReporter``.
        rng: Random source. Defaults to an unseeded ``random.Random``.
        yield_delay: Seconds to sleep at each per-candidate yield point.

    Raises:
        ConfigurationError: If ``config`` is structurally invalid.
    """

    def __init__(
        self,
        config: PlacementConfig,
        renderer: Renderer | None = None,
        progress: ProgressReporter | None = None,
        rng: random.Random | None = None,
        yield_delay: float = 0.005,
    ) -> None:
        config.validate()
        self.config = config
        self.renderer = renderer
        self.progress = progress or LoggingProgressReporter()
        self.rng = rng or random.Random()
        self.yield_delay = yield_delay
        self.state = EngineState.IDLE

    async def generate(self, sources: list[SourceImage]) -> PlacementResult:
        """Classify ``sources`` and place them.

        Args:
            sources: Raw inputs. Non-image and undecodable items are dropped.

        Returns:
            The ``PlacementResult`` of the placing stage.

        Raises:
            InputError: If no usable image remains after classification.
        """
        self.state = EngineState.CLASSIFYING
        self.progress(5, "Classifying images...")
        background, foreground = await asyncio.to_thread(
            classify, sources, self.config.non_transparent_png_bottom
        )
        logger.info(
            "Classified {} source(s): {} background, {} foreground.",
            len(sources),
            len(background),
            len(foreground),
        )
        if not background and not foreground:
            self.state = EngineState.IDLE
            raise InputError(f"No usable images among {len(sources)} source(s).")

        self.progress(10, "Placing images...")
        result = await self.place(background, foreground)
        self.progress(100, "Done.")
        return result

    async def place(
        self,
        background: list[ImageCandidate],
        foreground: list[ImageCandidate],
    ) -> PlacementResult:
        """Place background candidates, then foreground candidates.

        Only the first ``min(config.image_count, len(candidates))`` candidates
        are attempted. Progress is reported once per candidate with the
        percentage of attempted candidates that were placed so far.

        Args:
            background: Background layer, attempted first.
            foreground: Foreground layer.

        Returns:
            Accepted placements in draw order.
        """
        self.state = EngineState.PLACING
        candidates = [*background, *foreground]
        total = min(self.config.image_count, len(candidates))
        result = PlacementResult(total=total)
        placed: list[Rect] = []

        for candidate in candidates[:total]:
            accepted = self._try_place(candidate, placed)
            if accepted is not None:
                rect, angle = accepted
                placed.append(rect)
                result.placements.append(Placement(candidate, rect, angle))
                if self.renderer is not None:
                    self.renderer.draw(candidate.image, rect, angle)
                logger.debug(
                    "Placed {!r} ({}) at ({}, {}) {:.0f}x{:.0f}, {:.1f}°",
                    candidate.name,
                    candidate.layer,
                    rect.x,
                    rect.y,
                    rect.w,
                    rect.h,
                    angle,
                )
            else:
                logger.debug(
                    "Skipped {!r}: no valid position in {} attempt(s).",
                    candidate.name,
                    self.config.max_attempts,
                )

            percent = math.floor(result.placed_count / total * 100)
            self.progress(percent, f"Placed {result.placed_count} of {total} image(s)")
            await asyncio.sleep(self.yield_delay)

        self.state = EngineState.DONE
        if result.shortfall:
            logger.warning(
                "Placed {}/{} image(s); {} could not be placed.",
                result.placed_count,
                total,
                result.shortfall,
            )
        else:
            logger.info("Placed all {} image(s).", total)
        return result

    def _try_place(
        self,
        candidate: ImageCandidate,
        placed: list[Rect],
    ) -> tuple[Rect, float] | None:
        """Sample placements for ``candidate`` until one is accepted.

        Returns:
            ``(rect, angle_degrees)`` of the first accepted attempt, or
            ``None`` when every attempt was rejected.
        """
        cfg = self.config
        ratio = candidate.height / candidate.width

        for _ in range(cfg.max_attempts):
            size = math.floor(self.rng.random() * (cfg.max_size - cfg.min_size) + cfg.min_size)
            draw_w = size
            draw_h = size * ratio
            if draw_w > cfg.canvas_width or draw_h > cfg.canvas_height:
                continue

            x = math.floor(self.rng.random() * (cfg.canvas_width - draw_w))
            y = math.floor(self.rng.random() * (cfg.canvas_height - draw_h))
            angle = self.rng.random() * (cfg.rotation_max - cfg.rotation_min) + cfg.rotation_min
            rect = Rect(x, y, draw_w, draw_h)

            if any(intersection_over_union(rect, other) > cfg.max_iou for other in placed):
                continue
            if overlaps_any_head(rect, placed, cfg.head_ratio):
                continue
            return rect, angle

        return None
