"""
Clip a categorical land-cover raster to a region and coarsen it.

The boundary is always reprojected into the raster's CRS (never the other
way around) so the large source raster is read only once, windowed to the
region's extent. After cropping and masking, the result is aggregated by
majority vote and reprojected to the working geographic CRS.

Usage:
    from src.landcover.clipping import clip_and_aggregate

    landcover = clip_and_aggregate(
        "data/landcover/32T_20230101-20240101.tif",
        boundary,
        factor=5,
    )
"""

import logging

import numpy as np
import rasterio.mask
from rasterio.warp import Resampling
from shapely.geometry import box, mapping

from src.config import WORKING_GEOGRAPHIC_CRS
from src.landcover.artifacts import CategoricalRaster, RegionBoundary
from src.landcover.data_loading import open_raster, read_palette
from src.landcover.errors import EmptyIntersectionError
from src.landcover.transforms import aggregate_categorical, reproject_raster

logger = logging.getLogger(__name__)


def clip_categorical_raster(path, boundary: RegionBoundary, band: int = 1) -> CategoricalRaster:
    """
    Crop a categorical raster to a boundary and mask cells outside it.

    Args:
        path: Path to the source raster (single band, integer codes)
        boundary: Region boundary in any CRS
        band: Band holding the class codes (default: 1)

    Returns:
        CategoricalRaster in the source CRS, cropped to the boundary's
        bounding extent. Cells outside the polygon hold nodata; cells inside
        keep their original codes. The source palette is carried along.

    Raises:
        RasterLoadError: If the source cannot be read
        EmptyIntersectionError: If the boundary does not touch the raster
    """
    with open_raster(path) as src:
        nodata = int(src.nodata) if src.nodata is not None else 0
        region = boundary.to_crs(src.crs)

        if not region.geometry.intersects(box(*src.bounds)):
            raise EmptyIntersectionError(
                f"Boundary {boundary.name or ''} does not intersect raster extent {tuple(src.bounds)}"
            )

        logger.info(f"Clipping {path} to boundary (raster CRS {src.crs})")
        clipped, clipped_transform = rasterio.mask.mask(
            src,
            [mapping(region.geometry)],
            crop=True,
            nodata=nodata,
            filled=True,
            indexes=band,
        )
        palette = read_palette(src, band)

    if not np.any(clipped != nodata):
        raise EmptyIntersectionError(f"No raster cells of {path} fall inside the boundary")

    logger.info(f"  Clipped shape: {clipped.shape}")
    return CategoricalRaster(
        data=clipped,
        transform=clipped_transform,
        crs=region.crs,
        nodata=nodata,
        palette=palette,
    )


def aggregate_raster(raster: CategoricalRaster, factor: int) -> CategoricalRaster:
    """Return a new raster aggregated by ``factor`` x ``factor`` majority vote."""
    data, transform, _ = aggregate_categorical(factor, raster.nodata)(raster.data, raster.transform)
    return CategoricalRaster(data, transform, raster.crs, raster.nodata, raster.palette)


def reproject_categorical(raster: CategoricalRaster, dst_crs) -> CategoricalRaster:
    """Reproject a categorical raster with nearest-neighbour resampling."""
    reprojector = reproject_raster(
        src_crs=raster.crs,
        dst_crs=dst_crs,
        nodata_value=raster.nodata,
        resampling=Resampling.nearest,
    )
    data, transform, crs = reprojector(raster.data, raster.transform)
    return CategoricalRaster(data, transform, crs, raster.nodata, raster.palette)


def clip_and_aggregate(
    path,
    boundary: RegionBoundary,
    factor: int = 1,
    working_crs=WORKING_GEOGRAPHIC_CRS,
) -> CategoricalRaster:
    """
    Clip, aggregate and reproject a categorical raster in one step.

    Args:
        path: Path to the source land-cover raster
        boundary: Region boundary
        factor: Majority-vote aggregation factor, 1 keeps full resolution
        working_crs: CRS of the returned raster (default: EPSG:4326)

    Returns:
        CategoricalRaster in ``working_crs``
    """
    clipped = clip_categorical_raster(path, boundary)
    aggregated = aggregate_raster(clipped, factor)
    result = reproject_categorical(aggregated, working_crs)
    logger.info(
        f"Land cover ready: {result.shape} cells, codes {result.codes().tolist()}, CRS {result.crs}"
    )
    return result
