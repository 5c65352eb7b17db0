"""
Raster reading and writing for the land-cover pipeline.

Loads categorical land-cover rasters with their embedded palettes, merges DEM
tiles, and writes every intermediate artifact to GeoTIFF so a failed run
leaves inspectable state on disk.
"""

import logging
from pathlib import Path

import numpy as np
import rasterio
import rasterio.shutil
from rasterio.merge import merge
from tqdm import tqdm

from src.landcover.artifacts import CategoricalRaster, ColorRaster, ElevationRaster
from src.landcover.errors import RasterLoadError

logger = logging.getLogger(__name__)


def open_raster(path):
    """Open a raster with rasterio, raising RasterLoadError on failure."""
    path = Path(path)
    if not path.exists():
        raise RasterLoadError(f"Raster file does not exist: {path}")
    try:
        return rasterio.open(path)
    except rasterio.errors.RasterioIOError as e:
        raise RasterLoadError(f"Cannot read raster {path}: {e}") from e


def read_palette(dataset, band: int = 1):
    """
    Read the embedded color table of a raster band.

    Args:
        dataset: Open rasterio dataset or path to a raster file
        band: Band index (default: 1)

    Returns:
        dict mapping code -> (r, g, b, a), or None if the band has no palette
    """
    if isinstance(dataset, (str, Path)):
        with open_raster(dataset) as src:
            return read_palette(src, band)

    try:
        palette = dataset.colormap(band)
    except ValueError:
        logger.warning(f"No color table found in band {band} of {dataset.name}")
        return None

    logger.debug(f"Read palette with {len(palette)} entries from {dataset.name}")
    return {int(code): tuple(int(c) for c in rgba) for code, rgba in palette.items()}


def load_categorical_raster(path, band: int = 1) -> CategoricalRaster:
    """
    Load a single-band categorical raster with its palette.

    Args:
        path: Path to the raster file
        band: Band index holding the class codes (default: 1)

    Returns:
        CategoricalRaster

    Raises:
        RasterLoadError: If the file is missing or unreadable
    """
    logger.info(f"Loading categorical raster: {path}")
    with open_raster(path) as src:
        data = src.read(band)
        nodata = int(src.nodata) if src.nodata is not None else 0
        raster = CategoricalRaster(
            data=data,
            transform=src.transform,
            crs=src.crs,
            nodata=nodata,
            palette=read_palette(src, band),
        )

    logger.info(f"  Shape: {raster.shape}, CRS: {raster.crs}, nodata: {raster.nodata}")
    return raster


def write_categorical_raster(raster: CategoricalRaster, path) -> Path:
    """Write a categorical raster (and its palette) to GeoTIFF."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    height, width = raster.shape

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=raster.data.dtype,
        crs=raster.crs,
        transform=raster.transform,
        nodata=raster.nodata,
        compress="deflate",
    ) as dst:
        dst.write(raster.data, 1)
        if raster.palette and raster.data.dtype in (np.uint8, np.uint16):
            dst.write_colormap(1, raster.palette)

    logger.info(f"Wrote categorical raster: {path}")
    return path


def write_virtual_mosaic(raster_path, vrt_path) -> Path:
    """Write a GDAL VRT that lazily references ``raster_path``."""
    vrt_path = Path(vrt_path)
    rasterio.shutil.copy(str(raster_path), str(vrt_path), driver="VRT")
    logger.info(f"Wrote virtual mosaic: {vrt_path}")
    return vrt_path


def write_color_raster(raster: ColorRaster, path) -> Path:
    """Write a color raster as a 4-band RGBA GeoTIFF (alpha = validity mask)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rgba = np.moveaxis(raster.to_rgba_image(), -1, 0)
    height, width = raster.shape

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=4,
        dtype="uint8",
        crs=raster.crs,
        transform=raster.transform,
        photometric="RGB",
        alpha="YES",
        compress="deflate",
    ) as dst:
        dst.write(rgba)

    logger.info(f"Wrote color raster: {path}")
    return path


def load_color_raster(path) -> ColorRaster:
    """Read a 4-band RGBA GeoTIFF written by write_color_raster."""
    with open_raster(path) as src:
        if src.count < 4:
            raise RasterLoadError(f"Expected RGBA raster with 4 bands, got {src.count}: {path}")
        rgba = src.read()
        return ColorRaster(
            rgb=rgba[:3],
            mask=rgba[3] > 0,
            transform=src.transform,
            crs=src.crs,
        )


def load_elevation_raster(path, band: int = 1) -> ElevationRaster:
    """Load a DEM file; nodata cells become NaN."""
    logger.info(f"Loading DEM: {path}")
    with open_raster(path) as src:
        data = src.read(band).astype(np.float32)
        if src.nodata is not None:
            data[data == src.nodata] = np.nan
        return ElevationRaster(data=data, transform=src.transform, crs=src.crs)


def write_elevation_raster(raster: ElevationRaster, path) -> Path:
    """Write a DEM to a float32 GeoTIFF with NaN nodata."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    height, width = raster.shape

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype="float32",
        crs=raster.crs,
        transform=raster.transform,
        nodata=np.nan,
        compress="deflate",
    ) as dst:
        dst.write(raster.data, 1)

    logger.info(f"Wrote DEM: {path}")
    return path


def load_dem_files(
    directory_path: str, pattern: str = "*.tif", recursive: bool = False
) -> ElevationRaster:
    """
    Load and merge DEM files from a directory into a single elevation raster.
    Supports any raster format readable by rasterio (HGT, GeoTIFF, etc.).

    Args:
        directory_path: Path to directory containing DEM files
        pattern: File pattern to match (default: "*.tif")
        recursive: Whether to search subdirectories recursively (default: False)

    Returns:
        ElevationRaster in the CRS of the tiles, nodata as NaN

    Raises:
        ValueError: If no valid DEM files are found or directory doesn't exist
        rasterio.errors.RasterioIOError: If there are issues reading the DEM files
    """
    logger.info(f"Searching for DEM files matching '{pattern}' in: {directory_path}")

    directory = Path(directory_path)

    if not directory.exists():
        raise ValueError(f"Directory does not exist: {directory}")

    if not directory.is_dir():
        raise ValueError(f"Path is not a directory: {directory}")

    # Find all matching files
    glob_func = directory.rglob if recursive else directory.glob
    dem_files = sorted(glob_func(pattern))

    if not dem_files:
        raise ValueError(f"No files matching '{pattern}' found in {directory}")

    return merge_dem_files(dem_files)


def merge_dem_files(dem_files) -> ElevationRaster:
    """
    Merge a list of DEM files into one elevation raster.

    Args:
        dem_files: Paths of DEM tiles sharing one CRS

    Returns:
        ElevationRaster in the CRS of the tiles, nodata as NaN

    Raises:
        ValueError: If none of the files could be opened as a DEM
    """
    # Validate and open files
    dem_datasets = []
    with tqdm(dem_files, desc="Opening DEM files") as pbar:
        for file in pbar:
            try:
                ds = rasterio.open(file)

                # Basic validation
                if ds.count == 0:
                    logger.warning(f"No raster bands found in {file}")
                    ds.close()
                    continue

                if ds.dtypes[0] not in ("int16", "int32", "float32", "float64"):
                    logger.warning(f"Unexpected data type in {file}: {ds.dtypes[0]}")
                    ds.close()
                    continue

                dem_datasets.append(ds)
                pbar.set_postfix({"opened": len(dem_datasets)})

            except rasterio.errors.RasterioIOError as e:
                logger.warning(f"Failed to open {file}: {str(e)}")
                continue

    if not dem_datasets:
        raise ValueError("No valid DEM files could be opened")

    logger.info(f"Successfully opened {len(dem_datasets)} DEM files")

    try:
        crs = dem_datasets[0].crs
        nodata = dem_datasets[0].nodata
        merged_dem, transform = merge(dem_datasets)

        # Extract first band - merge() returns 3D array (bands, height, width)
        merged_dem = merged_dem[0].astype(np.float32)
        if nodata is not None:
            merged_dem[merged_dem == nodata] = np.nan

        logger.info("Successfully merged DEMs:")
        logger.info(f"  Output shape: {merged_dem.shape}")
        logger.info(
            f"  Value range: {np.nanmin(merged_dem):.2f} to {np.nanmax(merged_dem):.2f}"
        )
        logger.info(f"  Transform: {transform}")

        return ElevationRaster(data=merged_dem, transform=transform, crs=crs)

    finally:
        # Clean up
        for ds in dem_datasets:
            ds.close()
