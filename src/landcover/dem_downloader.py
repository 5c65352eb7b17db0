"""
DEM (Digital Elevation Model) downloader for AWS Terrain Tiles.

Downloads elevation GeoTIFF tiles from the public ``elevation-tiles-prod``
bucket for the extent of a region boundary, merges them and clips the
result to the boundary.

Terrain Tiles:
    - Global coverage, Web Mercator (EPSG:3857) slippy-map tiling
    - Zoom 0 (whole world) to 14 (~10 m near the equator)
    - One 512x512 GeoTIFF per tile, heights in meters

Usage - Download by bbox::

    from src.landcover.dem_downloader import download_dem_by_bbox

    bbox = (45.8, 5.9, 47.8, 10.5)  # Switzerland (south, west, north, east)
    files = download_dem_by_bbox(bbox, output_dir="data/downloads/dem", zoom=9)

Usage - Provider for the pipeline::

    from src.landcover.dem_downloader import TerrainTilesElevationProvider

    dem = TerrainTilesElevationProvider().fetch(boundary, zoom=9)
"""

import logging
import math
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import rasterio.mask
from rasterio.io import MemoryFile
import requests
from shapely.geometry import mapping
from tqdm import tqdm

from src.config import DEM_DOWNLOADS, MAX_ZOOM, REQUEST_TIMEOUT, TERRAIN_TILES_URL_TEMPLATE
from src.landcover.artifacts import ElevationRaster, RegionBoundary
from src.landcover.data_loading import merge_dem_files
from src.landcover.errors import ExternalAssetFetchError

logger = logging.getLogger(__name__)

# Web Mercator stops at about +/-85.0511 degrees
MAX_MERCATOR_LAT = 85.0511287798


def get_tile_index(lat: float, lon: float, zoom: int) -> Tuple[int, int]:
    """
    Get the slippy-map tile (x, y) containing a latitude/longitude.

    Args:
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        zoom: Zoom level (0-14)

    Returns:
        Tuple of (x, y) tile indices

    Examples:
        >>> get_tile_index(0.0, 0.0, 1)
        (1, 1)
        >>> get_tile_index(46.8, 8.2, 9)
        (267, 180)
    """
    lat = max(min(lat, MAX_MERCATOR_LAT), -MAX_MERCATOR_LAT)
    n = 2 ** zoom
    x = int((lon + 180.0) / 360.0 * n)
    lat_rad = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)

    # Clamp to the valid tile range (lon=180 or lat=-85.05 fall on the edge)
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def calculate_required_tiles(
    bbox: Tuple[float, float, float, float], zoom: int
) -> List[Tuple[int, int, int]]:
    """
    Calculate which terrain tiles are needed to cover a bounding box.

    Args:
        bbox: Bounding box as (south, west, north, east) in decimal degrees
        zoom: Zoom level

    Returns:
        List of (zoom, x, y) tuples, row by row from the north-west corner
    """
    south, west, north, east = bbox
    if south > north or west > east:
        raise ValueError(f"Invalid bbox (south, west, north, east): {bbox}")

    x_min, y_min = get_tile_index(north, west, zoom)
    x_max, y_max = get_tile_index(south, east, zoom)

    return [(zoom, x, y) for y in range(y_min, y_max + 1) for x in range(x_min, x_max + 1)]


def _download_tile(
    tile: Tuple[int, int, int],
    output_dir: Path,
    session: requests.Session,
    url_template: str = TERRAIN_TILES_URL_TEMPLATE,
    timeout: float = REQUEST_TIMEOUT,
) -> Path:
    """
    Download a single terrain tile, skipping it if already on disk.

    Args:
        tile: (zoom, x, y) tile index
        output_dir: Directory to save the tile in
        session: requests session used for the download
        url_template: URL with {z}, {x}, {y} placeholders
        timeout: Request timeout in seconds

    Returns:
        Path to the tile GeoTIFF

    Raises:
        ExternalAssetFetchError: If the request fails
    """
    z, x, y = tile
    path = output_dir / f"{z}_{x}_{y}.tif"
    if path.exists() and path.stat().st_size > 0:
        logger.debug(f"Tile already downloaded: {path.name}")
        return path

    url = url_template.format(z=z, x=x, y=y)
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ExternalAssetFetchError(f"Failed to download terrain tile {z}/{x}/{y}: {e}") from e

    path.write_bytes(response.content)
    return path


def download_dem_by_bbox(
    bbox: Tuple[float, float, float, float],
    output_dir: str,
    zoom: int = 9,
    session: Optional[requests.Session] = None,
) -> List[Path]:
    """
    Download terrain tiles for a bounding box.

    Args:
        bbox: Bounding box as (south, west, north, east) in WGS84
        output_dir: Directory to save tiles (created if missing)
        zoom: Zoom level (default: 9, ~300 m cells at mid latitudes)
        session: Optional requests session

    Returns:
        List of Paths of downloaded (or already present) tiles
    """
    if not 0 <= zoom <= MAX_ZOOM:
        raise ValueError(f"Zoom must be between 0 and {MAX_ZOOM}, got {zoom}")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    tiles = calculate_required_tiles(bbox, zoom)
    logger.info(f"Need {len(tiles)} terrain tiles at zoom {zoom} for bbox {bbox}")

    session = session or requests.Session()
    paths = []
    for tile in tqdm(tiles, desc="Downloading terrain tiles"):
        paths.append(_download_tile(tile, output_path, session))

    logger.info(f"Terrain tiles ready in {output_path}")
    return paths


def clip_elevation(dem: ElevationRaster, boundary: RegionBoundary) -> ElevationRaster:
    """Mask DEM cells outside the boundary to NaN and crop to its extent."""
    region = boundary.to_crs(dem.crs)
    height, width = dem.shape

    # Scratch dataset lives in memory, never in the shared tile cache
    with MemoryFile() as memfile:
        with memfile.open(
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype="float32",
            crs=dem.crs,
            transform=dem.transform,
            nodata=np.nan,
        ) as src:
            src.write(dem.data.astype(np.float32), 1)
            clipped, transform = rasterio.mask.mask(
                src, [mapping(region.geometry)], crop=True, nodata=np.nan, filled=True, indexes=1
            )

    return ElevationRaster(data=clipped, transform=transform, crs=dem.crs)


class ElevationProvider:
    """Capability interface: return a DEM covering a boundary."""

    def fetch(self, boundary: RegionBoundary, zoom: int) -> ElevationRaster:
        raise NotImplementedError


class TerrainTilesElevationProvider(ElevationProvider):
    """
    Elevation from AWS Terrain Tiles, clipped to the region boundary.

    Args:
        download_dir: Where tiles are stored between runs
        clip: Mask cells outside the boundary (default: True)
        session: Optional requests session
    """

    def __init__(
        self,
        download_dir: Path = DEM_DOWNLOADS,
        clip: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.download_dir = Path(download_dir)
        self.clip = clip
        self.session = session

    def fetch(self, boundary: RegionBoundary, zoom: int) -> ElevationRaster:
        west, south, east, north = boundary.to_crs("EPSG:4326").bounds
        tile_dir = self.download_dir / f"z{zoom}"
        paths = download_dem_by_bbox(
            (south, west, north, east), tile_dir, zoom=zoom, session=self.session
        )

        dem = merge_dem_files(paths)
        if self.clip:
            dem = clip_elevation(dem, boundary)

        logger.info(f"DEM for {boundary.name}: {dem.shape} cells in {dem.crs}")
        return dem
