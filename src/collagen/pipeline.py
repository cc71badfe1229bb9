from __future__ import annotations

import os
import random
import shutil
from datetime import datetime
from pathlib import Path

from loguru import logger

from collagen.composition.engine import PlacementEngine
from collagen.composition.renderer import CanvasRenderer, draw_anchors
from collagen.errors import InputError
from collagen.models import CollageOutput, Placement, PlacementConfig, SourceImage
from collagen.output import save_run
from collagen.progress import LoggingProgressReporter, ProgressReporter


class Pipeline:
    """Multi-stage pipeline: classification → placement → rendering → export."""

    def __init__(
        self,
        output_dir: Path | str | None = None,
        progress: ProgressReporter | None = None,
        rng: random.Random | None = None,
        yield_delay: float = 0.005,
    ) -> None:
        """Initialize the pipeline.

        Args:
            output_dir: Base directory for run outputs. Defaults to the
                ``OUTPUT_DIR`` environment variable, then ``output``.
            progress: Progress sink shared by every stage. Defaults to
                ``LoggingProgressReporter``.
            rng: Random source for placement. Seed it for reproducible runs.
            yield_delay: Seconds the engine sleeps between candidates.
        """
        self.output_dir = Path(output_dir or os.environ.get("OUTPUT_DIR", "output"))
        self.progress = progress or LoggingProgressReporter()
        self.rng = rng
        self.yield_delay = yield_delay

    async def run(self, sources: list[SourceImage], config: PlacementConfig) -> CollageOutput:
        """Generate a collage from ``sources`` and save it.

        Pipeline stages:
        1. ``classify``: Decode sources and split them into layers.
        2. ``place``: Randomly place candidates, drawing each accepted one.
        3. ``draw_anchors``: Optional debug overlay of placements and head bands.
        4. ``save_run``: Persist collage and placement metadata.

        Args:
            sources: Raw inputs, images or not.
            config: Run configuration.

        Returns:
            The composed ``CollageOutput``.

        Raises:
            ConfigurationError: If ``config`` is invalid. Raised before any
                output is written.
            InputError: If no source is a usable image. The run directory
                created for this call is removed again.
        """
        renderer = CanvasRenderer(config.canvas_width, config.canvas_height)
        engine = PlacementEngine(
            config,
            renderer=renderer,
            progress=self.progress,
            rng=self.rng,
            yield_delay=self.yield_delay,
        )

        run_dir = self.output_dir / datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        created = not run_dir.exists()
        run_dir.mkdir(parents=True, exist_ok=True)

        log_sink_id = logger.add(
            run_dir / "pipeline.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {message}",
            level="DEBUG",
            encoding="utf-8",
        )

        try:
            try:
                return await self._run_stages(sources, config, engine, renderer, run_dir)
            finally:
                logger.remove(log_sink_id)
        except InputError:
            if created:
                shutil.rmtree(run_dir)
            raise

    async def _run_stages(
        self,
        sources: list[SourceImage],
        config: PlacementConfig,
        engine: PlacementEngine,
        renderer: CanvasRenderer,
        run_dir: Path,
    ) -> CollageOutput:
        # Stages 1-2: classification and placement.
        logger.info(
            "Generating {}×{} collage from {} source(s), up to {} image(s)...",
            config.canvas_width,
            config.canvas_height,
            len(sources),
            config.image_count,
        )
        result = await engine.generate(sources)

        # Stage 3: debug overlay.
        if config.visualize_anchors:
            logger.info("Drawing anchors for {} placement(s).", result.placed_count)
            draw_anchors(renderer.canvas, result.placements, config.head_ratio)

        collage = CollageOutput(
            image=renderer.to_rgb(),
            width=config.canvas_width,
            height=config.canvas_height,
            placement_provenance=[_provenance(p) for p in result.placements],
            total=result.total,
        )

        # Stage 4: save output.
        logger.info("Saving output to {}...", run_dir)
        save_run(collage, config, self.output_dir, run_dir=run_dir)
        logger.info("Pipeline complete. Run artifacts saved to {}", run_dir)

        return collage


def _provenance(placement: Placement) -> dict:
    rect = placement.rect
    return {
        "name": placement.candidate.name,
        "layer": placement.candidate.layer,
        "rect": [rect.x, rect.y, rect.w, rect.h],
        "angle": placement.angle_degrees,
    }
