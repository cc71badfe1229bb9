from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from collagen.models import CollageOutput, PlacementConfig


def save_run(
    collage: CollageOutput,
    config: PlacementConfig,
    output_dir: str | Path,
    run_dir: Path | None = None,
) -> Path:
    """Save a collage and its metadata to a timestamped subdirectory.

    Creates ``{output_dir}/{YYYY-MM-DD_HH-MM-SS}/`` containing
    ``collage.png`` and ``metadata.json``. The metadata records the run
    configuration, how many images were attempted and placed, and the
    geometry of every placement in draw order.

    Args:
        collage: The composed collage output.
        config: Configuration the collage was generated with.
        output_dir: Base directory for run outputs.
        run_dir: Pre-created run directory. When provided, ``output_dir``
            is ignored.

    Returns:
        Path to the run directory.
    """
    timestamp = datetime.now()
    if run_dir is None:
        run_dir = Path(output_dir) / timestamp.strftime("%Y-%m-%d_%H-%M-%S")
    run_dir.mkdir(parents=True, exist_ok=True)

    collage.image.save(run_dir / "collage.png")

    metadata = {
        "timestamp": timestamp.strftime("%Y-%m-%dT%H:%M:%S"),
        "canvas_size": [collage.width, collage.height],
        "config": config.to_dict(),
        "total": collage.total,
        "placed": len(collage.placement_provenance),
        "placements": collage.placement_provenance,
    }
    (run_dir / "metadata.json").write_text(json.dumps(metadata, indent=2) + "\n")

    return run_dir
