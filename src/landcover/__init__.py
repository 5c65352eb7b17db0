"""
Land-cover terrain visualization package.

Core functionality:
- Boundary resolution and categorical raster clipping/aggregation
- Palette color tables and colorization of class codes
- DEM download and alignment in an equal-area projection
- Scene composition, Blender rendering and legend compositing
- LandcoverTerrainPipeline driving the stages end to end
"""

from .artifacts import (
    AlignedPair,
    CategoricalRaster,
    ColorRaster,
    ElevationRaster,
    RegionBoundary,
    Scene,
)
from .errors import (
    BoundaryNotFound,
    EmptyIntersectionError,
    ExternalAssetFetchError,
    GridMismatchError,
    LandcoverTerrainError,
    PaletteMismatchError,
    RasterLoadError,
    RenderFailure,
    UnmappedCategoryError,
)
from .color_mapping import BlackPolicy, ColorTable, curate_color_table, extract_color_table
from .pipeline import LandcoverTerrainPipeline, PipelineConfig, PipelineResult
from .scene import BlenderRenderer, RenderParams, SceneComposer, TerrainRenderer

__all__ = [
    "AlignedPair",
    "CategoricalRaster",
    "ColorRaster",
    "ElevationRaster",
    "RegionBoundary",
    "Scene",
    "BoundaryNotFound",
    "EmptyIntersectionError",
    "ExternalAssetFetchError",
    "GridMismatchError",
    "LandcoverTerrainError",
    "PaletteMismatchError",
    "RasterLoadError",
    "RenderFailure",
    "UnmappedCategoryError",
    "BlackPolicy",
    "ColorTable",
    "curate_color_table",
    "extract_color_table",
    "LandcoverTerrainPipeline",
    "PipelineConfig",
    "PipelineResult",
    "BlenderRenderer",
    "RenderParams",
    "SceneComposer",
    "TerrainRenderer",
]
