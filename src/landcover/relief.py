"""
Shaded relief layers derived from the height matrix.

``height_shade`` colors elevations with a matplotlib colormap, ``add_shadow``
darkens it with a Horn-gradient hillshade, and ``add_overlay`` drapes the
land-cover colors on top. All functions return new uint8 ``(H, W, 3)``
images and leave their inputs untouched.
"""

import logging

import matplotlib
import numpy as np
from scipy import ndimage

from src.landcover.artifacts import ColorRaster

logger = logging.getLogger(__name__)

# Horn's 3x3 gradient kernels
_HORN_DX = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]]) / 8.0
_HORN_DY = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]]) / 8.0


def height_shade(dem_data, cmap_name="terrain", nodata_color=(255, 255, 255)):
    """
    Color a height matrix with a matplotlib colormap.

    Low elevations map to the start of the colormap, high elevations to the
    end. The result depends on the heights only, never on the land-cover
    texture.

    Args:
        dem_data: 2D array of heights (NaN = no data)
        cmap_name: Matplotlib colormap name (default: 'terrain')
        nodata_color: RGB used for NaN cells (default: white)

    Returns:
        uint8 array of shape (height, width, 3)
    """
    dem_data = np.asarray(dem_data, dtype=np.float32)
    valid_mask = ~np.isnan(dem_data)

    normalized = np.zeros_like(dem_data, dtype=np.float32)
    if valid_mask.any():
        min_elev = float(np.nanmin(dem_data))
        max_elev = float(np.nanmax(dem_data))
        logger.info(f"Height shade ({cmap_name}): range {min_elev:.1f} to {max_elev:.1f}")
        if max_elev > min_elev:
            normalized[valid_mask] = (dem_data[valid_mask] - min_elev) / (max_elev - min_elev)

    cmap = matplotlib.colormaps[cmap_name]
    rgb = (cmap(normalized)[:, :, :3] * 255).round().astype(np.uint8)
    rgb[~valid_mask] = nodata_color
    return rgb


def hillshade(dem_data, azimuth=315.0, altitude=45.0, cellsize=1.0):
    """
    Lambertian hillshade in [0, 1] using Horn's gradient.

    Args:
        dem_data: 2D array of heights (NaN = no data)
        azimuth: Sun azimuth in degrees clockwise from north (default: 315, NW)
        altitude: Sun altitude above the horizon in degrees (default: 45)
        cellsize: Horizontal size of one cell in height units (default: 1.0)

    Returns:
        float32 array, 1.0 on NaN cells
    """
    dem = np.asarray(dem_data, dtype=np.float64)
    nan_mask = np.isnan(dem)

    filled = dem.copy()
    if nan_mask.all():
        return np.ones(dem.shape, dtype=np.float32)
    if nan_mask.any():
        filled[nan_mask] = np.nanmean(dem)

    # Rows run north to south, so the northward gradient is -dy
    dz_dx = ndimage.correlate(filled, _HORN_DX, mode="nearest") / cellsize
    dz_dy = -ndimage.correlate(filled, _HORN_DY, mode="nearest") / cellsize

    slope = np.arctan(np.hypot(dz_dx, dz_dy))
    aspect = np.arctan2(-dz_dx, -dz_dy)

    azimuth_rad = np.radians(azimuth)
    zenith_rad = np.radians(90.0 - altitude)
    shade = np.cos(zenith_rad) * np.cos(slope) + np.sin(zenith_rad) * np.sin(slope) * np.cos(
        azimuth_rad - aspect
    )

    shade = np.clip(shade, 0.0, 1.0)
    shade[nan_mask] = 1.0
    return shade.astype(np.float32)


def add_shadow(image, dem_data, intensity=0.5, azimuth=315.0, altitude=45.0, cellsize=1.0):
    """
    Darken an RGB image with the hillshade of ``dem_data``.

    Args:
        image: uint8 (H, W, 3) image, usually from height_shade()
        dem_data: Height matrix with the same H x W
        intensity: 0 leaves the image unchanged, 1 applies the full shade
        azimuth: Sun azimuth in degrees
        altitude: Sun altitude in degrees
        cellsize: Horizontal cell size in height units

    Returns:
        New uint8 (H, W, 3) image
    """
    if image.shape[:2] != np.shape(dem_data):
        raise ValueError(f"Image {image.shape[:2]} and DEM {np.shape(dem_data)} differ in size")
    if not 0.0 <= intensity <= 1.0:
        raise ValueError(f"Shadow intensity must be in [0, 1], got {intensity}")

    shade = hillshade(dem_data, azimuth=azimuth, altitude=altitude, cellsize=cellsize)
    factor = 1.0 - intensity * (1.0 - shade)
    shaded = image.astype(np.float32) * factor[:, :, np.newaxis]
    return np.clip(shaded, 0, 255).round().astype(np.uint8)


def add_overlay(base, color: ColorRaster, alpha=1.0):
    """
    Drape land-cover colors over a relief image.

    Cells outside the color mask keep the base relief.

    Args:
        base: uint8 (H, W, 3) relief image
        color: ColorRaster on the same H x W grid
        alpha: Overlay opacity in [0, 1] (default: 1.0, full opacity)

    Returns:
        New uint8 (H, W, 3) image
    """
    if base.shape[:2] != color.shape:
        raise ValueError(f"Base image {base.shape[:2]} and overlay {color.shape} differ in size")
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"Overlay alpha must be in [0, 1], got {alpha}")

    overlay = np.moveaxis(color.rgb, 0, -1).astype(np.float32)
    result = base.astype(np.float32)
    mask = color.mask
    result[mask] = alpha * overlay[mask] + (1.0 - alpha) * result[mask]
    return result.round().astype(np.uint8)
