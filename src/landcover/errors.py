"""
Error types raised by the land-cover terrain pipeline.

Structural and input problems (missing raster, empty intersection, grid
mismatch) abort a run. ``UnmappedCategoryError`` is only raised when the
colorizer runs in strict mode; by default unmapped codes are logged and
dropped.
"""


class LandcoverTerrainError(Exception):
    """Base class for all pipeline errors."""


class BoundaryNotFound(LandcoverTerrainError, LookupError):
    """Raised when a region identifier has no boundary geometry."""


class RasterLoadError(LandcoverTerrainError, OSError):
    """Raised when a source raster cannot be opened or read."""


class EmptyIntersectionError(LandcoverTerrainError, ValueError):
    """Raised when the region boundary does not intersect the raster extent."""


class GridMismatchError(LandcoverTerrainError, ValueError):
    """Raised when two rasters cannot be brought onto a 1:1 cell grid."""


class UnmappedCategoryError(LandcoverTerrainError, KeyError):
    """Raised in strict mode when a raster holds codes missing from the color table."""

    def __init__(self, codes):
        self.codes = sorted(int(c) for c in codes)
        super().__init__(f"Category codes without a color: {self.codes}")

    def __str__(self):
        return self.args[0]


class ExternalAssetFetchError(LandcoverTerrainError, OSError):
    """Raised when a boundary, elevation tile or lighting asset download fails."""


class RenderFailure(LandcoverTerrainError, RuntimeError):
    """Raised when the external renderer does not produce an image."""


class PaletteMismatchError(LandcoverTerrainError, ValueError):
    """Raised when configured class codes are not defined by the raster palette."""
