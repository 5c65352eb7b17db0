"""Configuration module for the land-cover terrain maker.

Centralizes data paths, service URLs and default run settings.
"""
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
LANDCOVER_DIR = DATA_DIR / "landcover"
OUTPUT_DIR = DATA_DIR / "output"

# Download directories (created as needed)
DOWNLOAD_DIR = DATA_DIR / "downloads"
BOUNDARY_DOWNLOADS = DOWNLOAD_DIR / "boundaries"
DEM_DOWNLOADS = DOWNLOAD_DIR / "dem"
ASSET_DOWNLOADS = DOWNLOAD_DIR / "assets"

# Ensure download directories exist
for download_dir in [BOUNDARY_DOWNLOADS, DEM_DOWNLOADS, ASSET_DOWNLOADS]:
    download_dir.mkdir(parents=True, exist_ok=True)

# External services
GADM_URL_TEMPLATE = "https://geodata.ucdavis.edu/gadm/gadm4.1/json/gadm41_{code}_{level}.json"
TERRAIN_TILES_URL_TEMPLATE = "https://s3.amazonaws.com/elevation-tiles-prod/geotiff/{z}/{x}/{y}.tif"
DEFAULT_HDRI_URL = (
    "https://dl.polyhaven.org/file/ph-assets/HDRIs/hdr/4k/air_museum_playground_4k.hdr"
)
REQUEST_TIMEOUT = 60

# Coordinate systems
WORKING_GEOGRAPHIC_CRS = "EPSG:4326"

# ESRI 10m land cover classes (label -> code)
ESRI_CLASS_CODES = {
    "water": 1,
    "trees": 2,
    "flooded_vegetation": 4,
    "crops": 5,
    "built_area": 7,
    "bare_ground": 8,
    "snow_ice": 9,
    "clouds": 10,
    "rangeland": 11,
}
LEGEND_CLASSES = ["water", "trees", "crops", "built_area", "rangeland"]
WATER_BLUE = "#419bdf"

# Output file names
BOUNDARY_PREVIEW_NAME = "boundary_preview.png"
CLIPPED_RASTER_NAME = "landcover_clipped.tif"
CLIPPED_VRT_NAME = "landcover_clipped.vrt"
COLOR_RASTER_NAME = "landcover_color.tif"
COLOR_PREVIEW_NAME = "landcover_preview.png"
DEM_RASTER_NAME = "dem.tif"
ALIGNED_DEM_NAME = "dem_aligned.tif"
ALIGNED_COLOR_NAME = "landcover_aligned.tif"
HEIGHT_SHADE_NAME = "terrain_height_shade.png"
RENDER_NAME = "terrain_render.png"
LEGEND_NAME = "legend.png"
FINAL_NAME = "landcover_terrain.png"

# Default settings
DEFAULT_AGGREGATION_FACTOR = 5
DEFAULT_GADM_LEVEL = 0
DEFAULT_ZOOM = 9
MAX_ZOOM = 14
DEFAULT_ZSCALE = 15.0
DEFAULT_CAMERA_THETA = 0.0
DEFAULT_CAMERA_PHI = 85.0
DEFAULT_CAMERA_ZOOM = 0.6
DEFAULT_SAMPLES = 256
DEFAULT_LEGEND_WIDTH_FRACTION = 0.2
DEFAULT_LEGEND_OFFSET = (100, 100)
DEFAULT_LOG_LEVEL = "INFO"
