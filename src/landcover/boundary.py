"""
Region boundary resolution.

Fetches administrative boundaries from GADM and turns them into a single
``RegionBoundary`` geometry. The provider is passed in explicitly so tests
and offline runs can substitute a local source.

Usage:
    from src.landcover.boundary import GADMBoundaryProvider, resolve_boundary

    boundary = resolve_boundary("CHE", level=0, provider=GADMBoundaryProvider())
"""

import io
import logging
from pathlib import Path
from typing import Optional

import geopandas as gpd
import matplotlib.pyplot as plt
import requests

from src.config import BOUNDARY_DOWNLOADS, GADM_URL_TEMPLATE, REQUEST_TIMEOUT
from src.landcover.artifacts import RegionBoundary
from src.landcover.errors import BoundaryNotFound, ExternalAssetFetchError

logger = logging.getLogger(__name__)


class BoundaryProvider:
    """Capability interface: return region features for a code and level."""

    def fetch(self, region_code: str, level: int) -> gpd.GeoDataFrame:
        raise NotImplementedError


class GADMBoundaryProvider(BoundaryProvider):
    """
    Download GADM 4.1 GeoJSON boundaries.

    Responses are cached in ``cache_dir`` so repeated runs do not hit the
    service again.

    Args:
        url_template: URL with ``{code}`` and ``{level}`` placeholders
        cache_dir: Directory for downloaded files (None disables caching)
        session: Optional requests.Session to reuse connections
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        url_template: str = GADM_URL_TEMPLATE,
        cache_dir: Optional[Path] = BOUNDARY_DOWNLOADS,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.url_template = url_template
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, region_code: str, level: int) -> gpd.GeoDataFrame:
        code = region_code.upper()
        cached = self.cache_dir / f"gadm41_{code}_{level}.json" if self.cache_dir else None

        if cached is not None and cached.exists():
            logger.info(f"Using cached boundary: {cached}")
            return gpd.read_file(cached)

        url = self.url_template.format(code=code, level=level)
        logger.info(f"Downloading boundary {code} level {level} from {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalAssetFetchError(f"Boundary download failed for {code}: {e}") from e

        if response.status_code == 404:
            raise BoundaryNotFound(f"No GADM boundary for region '{code}' at level {level}")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise ExternalAssetFetchError(f"Boundary download failed for {code}: {e}") from e

        if cached is not None:
            cached.parent.mkdir(parents=True, exist_ok=True)
            cached.write_bytes(response.content)

        return gpd.read_file(io.BytesIO(response.content))


def resolve_boundary(region_code: str, level: int, provider: BoundaryProvider) -> RegionBoundary:
    """
    Resolve a region identifier to its boundary geometry.

    All features returned for the region are dissolved into one
    (multi)polygon.

    Args:
        region_code: Region identifier, e.g. ISO3 country code "CHE"
        level: Administrative level / resolution tier
        provider: Boundary source

    Returns:
        RegionBoundary in the provider's CRS

    Raises:
        BoundaryNotFound: If the provider has no geometry for the region
    """
    if not region_code:
        raise BoundaryNotFound("Empty region identifier")

    features = provider.fetch(region_code, level)
    if features is None or features.empty:
        raise BoundaryNotFound(f"No boundary features for region '{region_code}' level {level}")

    geometry = features.geometry.union_all()
    if geometry is None or geometry.is_empty:
        raise BoundaryNotFound(f"Boundary for region '{region_code}' is empty")

    crs = features.crs or "EPSG:4326"
    logger.info(f"Resolved boundary {region_code}: bounds {tuple(round(b, 4) for b in geometry.bounds)}")
    return RegionBoundary(geometry=geometry, crs=crs, name=region_code.upper())


def save_boundary_preview(boundary: RegionBoundary, output_path) -> Path:
    """Plot the boundary outline to a PNG for a quick visual check."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(6, 6))
    gpd.GeoSeries([boundary.geometry], crs=boundary.crs).plot(
        ax=ax, facecolor="none", edgecolor="black", linewidth=0.8
    )
    ax.set_title(boundary.name)
    ax.set_axis_off()
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved boundary preview: {output_path}")
    return output_path
