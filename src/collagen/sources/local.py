from __future__ import annotations

import mimetypes
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from collagen.models import SourceImage


def load_sources(paths: Iterable[Path | str]) -> list[SourceImage]:
    """Read files from disk as raw ``SourceImage`` items.

    Directories are expanded to their direct children, sorted by name.
    Every regular file is returned, images or not; the classifier decides
    what to keep, the way a file-upload list would be handled.

    Args:
        paths: Files and/or directories.

    Returns:
        One ``SourceImage`` per file, in the order encountered.
    """
    sources: list[SourceImage] = []
    for path in map(Path, paths):
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.is_file())
        elif path.is_file():
            files = [path]
        else:
            logger.warning("Source path {} does not exist, skipping.", path)
            continue

        for file in files:
            sources.append(
                SourceImage(
                    name=file.name,
                    data=file.read_bytes(),
                    content_type=mimetypes.guess_type(file.name)[0] or "",
                    origin=str(file),
                )
            )

    logger.debug("Loaded {} local source(s).", len(sources))
    return sources
