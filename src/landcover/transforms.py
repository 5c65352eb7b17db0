"""
Raster transformation operations for land-cover and elevation processing.

Every factory here returns a transform function with the signature
``transform(raster_data, transform=None) -> (data, new_transform, new_crs)``
so steps can be chained uniformly. ``new_crs`` is None when the step does not
change the coordinate system.
"""

import logging

import numpy as np
import rasterio
from rasterio import Affine
from rasterio.crs import CRS
from rasterio.warp import calculate_default_transform, reproject, Resampling


def aggregate_categorical(factor=2, nodata_value=0):
    """
    Create a majority-vote aggregation transform for categorical rasters.

    Each ``factor`` x ``factor`` block becomes one output cell holding the most
    frequent class code in the block. Nodata cells do not vote; a block made
    only of nodata stays nodata. Ties go to the lowest code. Edge blocks that
    are only partly covered by the input are kept, so the output shape is
    ``ceil(rows / factor) x ceil(cols / factor)``.

    Args:
        factor (int): Block edge length in cells, >= 1 (default: 2)
        nodata_value: Code marking empty cells (default: 0)

    Returns:
        function: A transform function that aggregates categorical data

    Raises:
        ValueError: If factor is not a positive integer
    """
    logger = logging.getLogger(__name__)

    if int(factor) != factor or factor < 1:
        raise ValueError(f"Aggregation factor must be a positive integer, got {factor}")
    factor = int(factor)

    def transform(raster_data, transform=None):
        """
        Aggregate class codes by block majority.

        Args:
            raster_data: 2D integer array of class codes
            transform: Optional affine transform

        Returns:
            tuple: (aggregated_data, new_transform, None)
        """
        if factor == 1:
            return raster_data.copy(), transform, None

        logger.info(f"Aggregating categorical raster by factor {factor} (majority vote)")

        height, width = raster_data.shape
        out_height = -(-height // factor)
        out_width = -(-width // factor)

        # Pad partial edge blocks with nodata so they do not vote
        padded = np.full(
            (out_height * factor, out_width * factor), nodata_value, dtype=raster_data.dtype
        )
        padded[:height, :width] = raster_data
        blocks = padded.reshape(out_height, factor, out_width, factor).swapaxes(1, 2)
        blocks = blocks.reshape(out_height, out_width, factor * factor)

        codes = np.unique(raster_data)
        codes = codes[codes != nodata_value]

        aggregated = np.full((out_height, out_width), nodata_value, dtype=raster_data.dtype)
        if codes.size:
            # codes are sorted ascending, so argmax picks the lowest code on ties
            counts = np.stack([(blocks == code).sum(axis=-1) for code in codes])
            winner = counts.argmax(axis=0)
            has_votes = counts.max(axis=0) > 0
            aggregated[has_votes] = codes[winner[has_votes]]

        new_transform = transform * Affine.scale(factor) if transform is not None else None

        logger.info(f"Original shape: {raster_data.shape}")
        logger.info(f"Aggregated shape: {aggregated.shape}")

        return aggregated, new_transform, None

    return transform


def scale_elevation(scale_factor=1.0, nodata_value=np.nan):
    """
    Create a raster elevation scaling transform function.

    Multiplies all elevation values by the scale factor. Used for vertical
    exaggeration without changing horizontal scale.

    Args:
        scale_factor (float): Multiplication factor for elevation values (default: 1.0)
        nodata_value: Value to treat as no data (default: np.nan)

    Returns:
        function: A transform function that scales elevation data
    """
    logger = logging.getLogger(__name__)

    def transform(raster_data, transform=None):
        """
        Scale elevation values in raster data.

        Args:
            raster_data: Input raster numpy array
            transform: Optional affine transform (unchanged by scaling)

        Returns:
            tuple: (scaled_data, transform, None)
        """
        logger.info(f"Scaling elevation by factor {scale_factor}")

        scaled_data = np.array(raster_data, dtype=np.float32, copy=True)

        # Mask out nodata values
        if nodata_value is None or (isinstance(nodata_value, float) and np.isnan(nodata_value)):
            mask = np.isnan(scaled_data)
        else:
            mask = scaled_data == nodata_value

        # Scale the valid data
        scaled_data[~mask] = scaled_data[~mask] * scale_factor

        if np.any(~mask):
            logger.info(
                f"Scaled range: {np.nanmin(scaled_data[~mask]):.2f} to "
                f"{np.nanmax(scaled_data[~mask]):.2f}"
            )

        # Transform is unchanged by scaling (affects Z only)
        return scaled_data, transform, None

    return transform


def reproject_raster(
    src_crs="EPSG:4326",
    dst_crs="EPSG:3857",
    nodata_value=np.nan,
    resampling=Resampling.bilinear,
    dst_shape=None,
    num_threads=4,
):
    """
    Generalized raster reprojection function

    Reprojecting to the source CRS is an exact no-op: the data and transform
    are returned unchanged. Use ``Resampling.nearest`` for categorical data.

    Args:
        src_crs: Source coordinate reference system
        dst_crs: Destination coordinate reference system
        nodata_value: Value to use for areas outside original data
        resampling: rasterio Resampling method (default: bilinear)
        dst_shape: Optional (rows, cols) to force the output pixel dimensions
        num_threads: Number of threads for parallel processing

    Returns:
        Function that transforms data and returns (data, transform, new_crs)
    """
    src_crs = CRS.from_user_input(src_crs)
    dst_crs = CRS.from_user_input(dst_crs)

    def _reproject_raster(src_data, src_transform):
        logger = logging.getLogger(__name__)

        if src_crs == dst_crs and dst_shape in (None, tuple(src_data.shape)):
            logger.debug(f"Source already in {dst_crs}, skipping reprojection")
            return src_data.copy(), src_transform, dst_crs

        logger.info(f"Reprojecting raster from {src_crs} to {dst_crs} ({resampling.name})")

        size_kwargs = {}
        if dst_shape is not None:
            size_kwargs = {"dst_height": dst_shape[0], "dst_width": dst_shape[1]}

        with rasterio.Env(GDAL_NUM_THREADS=str(num_threads)):
            # Calculate transform and dimensions for destination CRS
            dst_transform, width, height = calculate_default_transform(
                src_crs,
                dst_crs,
                src_data.shape[1],
                src_data.shape[0],
                *rasterio.transform.array_bounds(
                    src_data.shape[0], src_data.shape[1], src_transform
                ),
                **size_kwargs,
            )

            # Create destination array
            dst_data = np.full((height, width), nodata_value, dtype=src_data.dtype)

            reproject(
                source=np.ascontiguousarray(src_data),
                destination=dst_data,
                src_transform=src_transform,
                src_crs=src_crs,
                src_nodata=nodata_value,
                dst_transform=dst_transform,
                dst_crs=dst_crs,
                resampling=resampling,
                dst_nodata=nodata_value,
                num_threads=num_threads,
                warp_mem_limit=512,
            )

        logger.info(f"Reprojection complete. New shape: {dst_data.shape}")

        return dst_data, dst_transform, dst_crs

    return _reproject_raster
