"""
Align the land-cover colors with the elevation model.

The color raster is first resampled onto the DEM's own grid with
nearest-neighbour resampling, so class colors never blend across
boundaries. Both rasters are then reprojected together into a Lambert
azimuthal equal-area projection centred on the region, keeping the DEM's
pixel dimensions so every height cell has exactly one color cell.

Usage:
    from src.landcover.alignment import align, equal_area_crs_for

    pair = align(dem, colors, equal_area_crs_for(boundary))
    pair.elevation.shape == pair.color.shape  # True
"""

import logging

import numpy as np
from rasterio.crs import CRS
from rasterio.warp import Resampling, reproject

from src.landcover.artifacts import AlignedPair, ColorRaster, ElevationRaster, RegionBoundary
from src.landcover.errors import GridMismatchError
from src.landcover.transforms import reproject_raster

logger = logging.getLogger(__name__)


def equal_area_crs(lon: float, lat: float) -> CRS:
    """Lambert azimuthal equal-area CRS centred on (lon, lat)."""
    return CRS.from_proj4(
        f"+proj=laea +lat_0={lat:.6f} +lon_0={lon:.6f} "
        "+x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    )


def equal_area_crs_for(boundary: RegionBoundary) -> CRS:
    """Equal-area CRS centred on a boundary's centroid."""
    lon, lat = boundary.centroid_lonlat
    logger.info(f"Equal-area projection centred on lon={lon:.4f}, lat={lat:.4f}")
    return equal_area_crs(lon, lat)


def _warp_colors(color: ColorRaster, dst_shape, dst_transform, dst_crs) -> ColorRaster:
    """Nearest-neighbour warp of RGB + mask onto a destination grid."""
    rgba = np.moveaxis(color.to_rgba_image(), -1, 0)
    destination = np.zeros((4, *dst_shape), dtype=np.uint8)

    reproject(
        source=np.ascontiguousarray(rgba),
        destination=destination,
        src_transform=color.transform,
        src_crs=color.crs,
        dst_transform=dst_transform,
        dst_crs=dst_crs,
        resampling=Resampling.nearest,
    )

    mask = destination[3] > 0
    rgb = destination[:3]
    rgb[:, ~mask] = 0
    return ColorRaster(rgb=rgb, mask=mask, transform=dst_transform, crs=dst_crs)


def resample_to_grid(color: ColorRaster, dem: ElevationRaster) -> ColorRaster:
    """
    Resample a color raster onto the DEM's grid.

    Args:
        color: Color raster in any CRS and resolution
        dem: Elevation raster whose grid is the target

    Returns:
        ColorRaster with the DEM's shape, transform and CRS

    Raises:
        GridMismatchError: If no colored cell lands on the DEM grid
    """
    logger.info(f"Resampling colors {color.shape} onto DEM grid {dem.shape} (nearest)")
    resampled = _warp_colors(color, dem.shape, dem.transform, dem.crs)

    if not resampled.mask.any():
        raise GridMismatchError(
            "Color raster does not overlap the DEM grid; no cell correspondence possible"
        )

    logger.info(f"  {int(resampled.mask.sum())} of {resampled.mask.size} DEM cells colored")
    return resampled


def align(dem: ElevationRaster, color: ColorRaster, dst_crs) -> AlignedPair:
    """
    Build the aligned color/elevation pair in the working equal-area CRS.

    Args:
        dem: Elevation raster in its native CRS and resolution
        color: Color raster (any grid)
        dst_crs: Target CRS, normally from equal_area_crs_for()

    Returns:
        AlignedPair whose rasters both have the DEM's pixel dimensions and
        share one transform and CRS

    Raises:
        GridMismatchError: If the rasters cannot be put on one grid
    """
    on_dem_grid = resample_to_grid(color, dem)

    logger.info(f"Reprojecting DEM and colors to {dst_crs}")
    height_data, dst_transform, crs = reproject_raster(
        src_crs=dem.crs,
        dst_crs=dst_crs,
        nodata_value=np.nan,
        resampling=Resampling.bilinear,
        dst_shape=dem.shape,
    )(np.asarray(dem.data, dtype=np.float32), dem.transform)

    if height_data.shape != dem.shape:
        raise GridMismatchError(
            f"Reprojected DEM has shape {height_data.shape}, expected {dem.shape}"
        )

    elevation = ElevationRaster(data=height_data, transform=dst_transform, crs=crs)
    colors = _warp_colors(on_dem_grid, height_data.shape, dst_transform, crs)

    pair = AlignedPair(color=colors, elevation=elevation)
    logger.info(f"Aligned pair: {pair.shape} cells, transform {pair.transform}")
    return pair
