"""
Environment lighting assets for the photorealistic render.

The HDRI is downloaded once into the asset directory and reused on later
runs.
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from src.config import ASSET_DOWNLOADS, DEFAULT_HDRI_URL, REQUEST_TIMEOUT
from src.landcover.errors import ExternalAssetFetchError

logger = logging.getLogger(__name__)


def fetch_environment_map(
    url: str = DEFAULT_HDRI_URL,
    dest_dir: Path = ASSET_DOWNLOADS,
    session: Optional[requests.Session] = None,
    timeout: float = REQUEST_TIMEOUT,
) -> Path:
    """
    Download an environment (HDRI) map unless it is already on disk.

    Args:
        url: Location of the HDRI file
        dest_dir: Directory to store the file in
        session: Optional requests session
        timeout: Request timeout in seconds

    Returns:
        Path to the local HDRI file

    Raises:
        ExternalAssetFetchError: If the download fails
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    filename = Path(urlparse(url).path).name or "environment.hdr"
    path = dest_dir / filename
    if path.exists() and path.stat().st_size > 0:
        logger.info(f"Using cached environment map: {path}")
        return path

    logger.info(f"Downloading environment map from {url}")
    session = session or requests.Session()
    partial = path.with_suffix(path.suffix + ".part")

    try:
        with session.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total = int(response.headers.get("content-length", 0))
            with open(partial, "wb") as f, tqdm(
                total=total, unit="B", unit_scale=True, desc=filename
            ) as pbar:
                for chunk in response.iter_content(chunk_size=1 << 16):
                    f.write(chunk)
                    pbar.update(len(chunk))
    except requests.RequestException as e:
        partial.unlink(missing_ok=True)
        raise ExternalAssetFetchError(f"Failed to download environment map {url}: {e}") from e

    partial.replace(path)
    logger.info(f"Saved environment map: {path}")
    return path
