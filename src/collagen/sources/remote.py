from __future__ import annotations

import math
import mimetypes
from pathlib import Path, PurePosixPath
from urllib.parse import quote

import httpx
from loguru import logger

from collagen.models import SourceImage
from collagen.progress import LoggingProgressReporter, ProgressReporter


async def fetch_manifest_sources(
    manifest_url: str,
    base_url: str,
    cache_dir: Path = Path("output/cache"),
    progress: ProgressReporter | None = None,
) -> list[SourceImage]:
    """Download every image listed in a remote JSON manifest.

    The manifest is a JSON array of file names; each file is fetched from
    ``base_url`` followed by its name. Files already present in ``cache_dir``
    are reused without re-downloading. Cache files are keyed on the full
    relative name, so entries sharing a base name stay distinct; entries that
    would escape ``cache_dir`` are refused. Failed downloads and responses
    that are not images log a warning, are not cached, and are left out of
    the result.

    Args:
        manifest_url: URL of the JSON file-name list.
        base_url: Prefix prepended to every file name.
        cache_dir: Directory holding downloaded files.
        progress: Receives one update per manifest entry.

    Returns:
        ``SourceImage`` items in manifest order.

    Raises:
        httpx.HTTPError: If the manifest itself cannot be fetched.
        ValueError: If the manifest is not a JSON array.
    """
    progress = progress or LoggingProgressReporter()
    cache_dir.mkdir(parents=True, exist_ok=True)
    if not base_url.endswith("/"):
        base_url += "/"

    async with httpx.AsyncClient(timeout=30) as client:
        progress(1, "Fetching image manifest...")
        resp = await client.get(manifest_url)
        resp.raise_for_status()
        names = resp.json()
        if not isinstance(names, list):
            raise ValueError(f"Manifest at {manifest_url} is not a JSON array")
        names = [str(n) for n in names]
        logger.info("Manifest lists {} image(s).", len(names))

        sources: list[SourceImage] = []
        for i, name in enumerate(names, 1):
            url = base_url + quote(name)
            percent = math.floor(i / len(names) * 100)

            local_path = _cache_path(cache_dir, name)
            if local_path is None:
                logger.warning("Refusing manifest entry {!r} outside the cache directory.", name)
                progress(percent, f"Skipping invalid entry {i} / {len(names)}")
                continue

            if local_path.exists():
                sources.append(_source_from_file(name, local_path, url))
                progress(percent, f"Skipping cached image: {name}")
                continue

            try:
                img_resp = await client.get(url)
                img_resp.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("Failed to download {}: {}", url, exc)
                progress(percent, f"Failed to download image {i} / {len(names)}")
                continue

            content_type = img_resp.headers.get("content-type", "").split(";")[0].strip()
            content_type = content_type or mimetypes.guess_type(name)[0] or ""
            if not content_type.startswith("image/"):
                logger.warning("Not caching {}: content type {!r}", url, content_type)
                progress(percent, f"Skipping non-image {i} / {len(names)}")
                continue

            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(img_resp.content)
            sources.append(
                SourceImage(
                    name=name,
                    data=img_resp.content,
                    content_type=content_type,
                    origin=url,
                )
            )
            progress(percent, f"Downloading image {i} / {len(names)}")

    return sources


def _cache_path(cache_dir: Path, name: str) -> Path | None:
    """Map a manifest entry to its cache file, keyed on the full relative name.

    Returns ``None`` for absolute or empty names and names with ``..`` parts
    or backslashes.
    """
    relative = PurePosixPath(name)
    if not relative.parts or relative.is_absolute() or ".." in relative.parts or "\\" in name:
        return None
    return cache_dir.joinpath(*relative.parts)


def _source_from_file(name: str, path: Path, url: str) -> SourceImage:
    return SourceImage(
        name=name,
        data=path.read_bytes(),
        content_type=mimetypes.guess_type(name)[0] or "",
        origin=url,
    )
