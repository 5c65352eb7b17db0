"""
Immutable artifacts passed between pipeline stages.

Each stage returns a new artifact and never mutates its inputs. Array fields
are stored as read-only views so an accidental in-place edit downstream fails
loudly instead of corrupting an earlier stage's output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import geopandas as gpd
from rasterio import Affine
from rasterio.crs import CRS
from rasterio.transform import array_bounds

from src.landcover.errors import GridMismatchError


def _readonly(array: np.ndarray) -> np.ndarray:
    view = np.asarray(array).view()
    view.flags.writeable = False
    return view


def _as_crs(crs) -> CRS:
    return crs if isinstance(crs, CRS) else CRS.from_user_input(crs)


@dataclass(frozen=True)
class RegionBoundary:
    """Polygon or multipolygon geometry of the target region with its CRS."""

    geometry: object
    crs: CRS
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "crs", _as_crs(self.crs))

    def to_crs(self, crs) -> "RegionBoundary":
        """Return a copy of the boundary reprojected to ``crs``."""
        crs = _as_crs(crs)
        if crs == self.crs:
            return self
        series = gpd.GeoSeries([self.geometry], crs=self.crs).to_crs(crs)
        return RegionBoundary(series.iloc[0], crs, self.name)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(minx, miny, maxx, maxy) in the boundary's own CRS."""
        return tuple(self.geometry.bounds)

    @property
    def centroid_lonlat(self) -> Tuple[float, float]:
        """Centroid as (lon, lat) in WGS84."""
        centroid = self.to_crs("EPSG:4326").geometry.centroid
        return float(centroid.x), float(centroid.y)


@dataclass(frozen=True)
class CategoricalRaster:
    """2D grid of integer class codes with georeferencing and its palette."""

    data: np.ndarray
    transform: Affine
    crs: CRS
    nodata: int = 0
    palette: Optional[Dict[int, Tuple[int, int, int, int]]] = None

    def __post_init__(self):
        if self.data.ndim != 2:
            raise ValueError(f"Categorical raster must be 2D, got shape {self.data.shape}")
        if not np.issubdtype(self.data.dtype, np.integer):
            raise TypeError(f"Categorical raster must hold integer codes, got {self.data.dtype}")
        object.__setattr__(self, "data", _readonly(self.data))
        object.__setattr__(self, "crs", _as_crs(self.crs))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def res(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return array_bounds(self.data.shape[0], self.data.shape[1], self.transform)

    def codes(self) -> np.ndarray:
        """Sorted distinct class codes, excluding the nodata sentinel."""
        values = np.unique(self.data)
        return values[values != self.nodata]


@dataclass(frozen=True)
class ColorRaster:
    """
    RGB grid derived from a categorical raster.

    ``rgb`` has shape (3, rows, cols) as uint8; ``mask`` is True where a cell
    carries a color and False where it was dropped (nodata or unmapped).
    """

    rgb: np.ndarray
    mask: np.ndarray
    transform: Affine
    crs: CRS

    def __post_init__(self):
        if self.rgb.ndim != 3 or self.rgb.shape[0] != 3:
            raise ValueError(f"Color raster must have shape (3, H, W), got {self.rgb.shape}")
        if self.mask.shape != self.rgb.shape[1:]:
            raise ValueError(
                f"Mask shape {self.mask.shape} does not match color grid {self.rgb.shape[1:]}"
            )
        object.__setattr__(self, "rgb", _readonly(self.rgb.astype(np.uint8, copy=False)))
        object.__setattr__(self, "mask", _readonly(self.mask.astype(bool, copy=False)))
        object.__setattr__(self, "crs", _as_crs(self.crs))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.mask.shape

    def unique_colors(self) -> set:
        """Set of (r, g, b) tuples present in valid cells."""
        if not self.mask.any():
            return set()
        pixels = self.rgb[:, self.mask].T
        return {tuple(int(v) for v in row) for row in np.unique(pixels, axis=0)}

    def to_rgba_image(self) -> np.ndarray:
        """(rows, cols, 4) uint8 image with dropped cells fully transparent."""
        alpha = np.where(self.mask, 255, 0).astype(np.uint8)
        return np.dstack([self.rgb[0], self.rgb[1], self.rgb[2], alpha])


@dataclass(frozen=True)
class ElevationRaster:
    """2D float grid of heights; NaN marks missing cells."""

    data: np.ndarray
    transform: Affine
    crs: CRS

    def __post_init__(self):
        if self.data.ndim != 2:
            raise ValueError(f"DEM must be 2D, got shape {self.data.shape}")
        object.__setattr__(self, "data", _readonly(self.data.astype(np.float32, copy=False)))
        object.__setattr__(self, "crs", _as_crs(self.crs))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return array_bounds(self.data.shape[0], self.data.shape[1], self.transform)


@dataclass(frozen=True)
class AlignedPair:
    """Color and elevation rasters on one grid: same shape, transform and CRS."""

    color: ColorRaster
    elevation: ElevationRaster

    def __post_init__(self):
        if self.color.shape != self.elevation.shape:
            raise GridMismatchError(
                f"Color grid {self.color.shape} does not match DEM grid {self.elevation.shape}"
            )
        if not self.color.transform.almost_equals(self.elevation.transform):
            raise GridMismatchError(
                f"Transforms differ: {self.color.transform} vs {self.elevation.transform}"
            )
        if self.color.crs != self.elevation.crs:
            raise GridMismatchError(f"CRS differ: {self.color.crs} vs {self.elevation.crs}")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.elevation.shape

    @property
    def transform(self) -> Affine:
        return self.elevation.transform

    @property
    def crs(self) -> CRS:
        return self.elevation.crs


@dataclass(frozen=True)
class Scene:
    """Height matrix, draped texture and render parameters for the renderer."""

    height: np.ndarray
    texture: np.ndarray
    params: object
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.texture.shape[:2] != self.height.shape:
            raise GridMismatchError(
                f"Texture {self.texture.shape[:2]} does not match height matrix {self.height.shape}"
            )
        object.__setattr__(self, "height", _readonly(self.height))
        object.__setattr__(self, "texture", _readonly(self.texture))
