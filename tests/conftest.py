"""Pytest configuration and fixtures for land-cover terrain tests."""
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

# ESRI-style palette: black entries are overloaded for water and unused codes
SAMPLE_PALETTE = {
    0: (0, 0, 0, 255),
    1: (0, 0, 0, 255),
    2: (53, 130, 33, 255),
    3: (0, 0, 0, 255),
    4: (135, 209, 158, 255),
    5: (255, 219, 92, 255),
    6: (0, 0, 0, 255),
    7: (237, 2, 42, 255),
    8: (237, 233, 228, 255),
    9: (242, 250, 255, 255),
    10: (200, 200, 200, 255),
    11: (198, 173, 141, 255),
}

# 40x40 cells of 0.01 degrees: lon 8.0-8.4, lat 46.0-46.4
LANDCOVER_TRANSFORM = from_origin(8.0, 46.4, 0.01, 0.01)


def write_categorical_tif(path, data, transform=LANDCOVER_TRANSFORM, crs="EPSG:4326",
                          palette=SAMPLE_PALETTE, nodata=0):
    """Write a single-band uint8 GeoTIFF with a color table."""
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=data.shape[0],
        width=data.shape[1],
        count=1,
        dtype="uint8",
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(data.astype(np.uint8), 1)
        if palette:
            dst.write_colormap(1, palette)
    return path


def write_dem_tif(path, data, transform, crs="EPSG:4326", nodata=-9999.0):
    """Write a single-band float32 DEM GeoTIFF."""
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=data.shape[0],
        width=data.shape[1],
        count=1,
        dtype="float32",
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(data.astype(np.float32), 1)
    return path


@pytest.fixture
def landcover_data():
    """40x40 grid of ESRI codes: five legend classes, two extra classes, nodata rim."""
    data = np.zeros((40, 40), dtype=np.uint8)
    data[2:38, 2:10] = 1  # water
    data[2:38, 10:17] = 2  # trees
    data[2:38, 17:24] = 5  # crops
    data[2:38, 24:31] = 7  # built area
    data[2:38, 31:38] = 11  # rangeland
    data[2:8, 17:24] = 8  # bare ground (not in legend)
    data[32:38, 24:31] = 4  # flooded vegetation (not in legend)
    return data


@pytest.fixture
def landcover_tif(tmp_path, landcover_data):
    """Path to a synthetic land-cover GeoTIFF with palette."""
    return write_categorical_tif(tmp_path / "landcover.tif", landcover_data)


@pytest.fixture
def sample_boundary():
    """Square boundary inside the synthetic land-cover extent."""
    from shapely.geometry import box

    from src.landcover.artifacts import RegionBoundary

    return RegionBoundary(box(8.052, 46.052, 8.348, 46.348), "EPSG:4326", name="TST")


@pytest.fixture
def sample_dem():
    """Create a small synthetic DEM for testing."""
    x = np.linspace(-10, 10, 30)
    y = np.linspace(-10, 10, 30)
    X, Y = np.meshgrid(x, y)
    # Simple terrain with a peak in the center
    Z = 1000 + 500 * np.exp(-(X**2 + Y**2) / 50)
    return Z.astype(np.float32)


@pytest.fixture
def sample_elevation(sample_dem):
    """ElevationRaster covering the synthetic land-cover extent."""
    from src.landcover.artifacts import ElevationRaster

    transform = from_origin(8.0, 46.4, 0.4 / 30, 0.4 / 30)
    return ElevationRaster(data=sample_dem, transform=transform, crs="EPSG:4326")


@pytest.fixture
def sample_color_raster(landcover_data):
    """ColorRaster built from the synthetic land cover with every ESRI class colored."""
    from src.landcover.artifacts import CategoricalRaster
    from src.landcover.color_mapping import curate_color_table, extract_color_table
    from src.landcover.colorizer import colorize
    from src.landcover.pipeline import default_class_codes

    raster = CategoricalRaster(landcover_data, LANDCOVER_TRANSFORM, "EPSG:4326", 0, SAMPLE_PALETTE)
    table = curate_color_table(extract_color_table(SAMPLE_PALETTE), default_class_codes())
    return colorize(raster, table)


class FakeBoundaryProvider:
    """Boundary provider returning a fixed GeoDataFrame."""

    def __init__(self, geometries, crs="EPSG:4326"):
        self.geometries = geometries
        self.crs = crs
        self.calls = []

    def fetch(self, region_code, level):
        import geopandas as gpd

        self.calls.append((region_code, level))
        return gpd.GeoDataFrame({"GID_0": [region_code] * len(self.geometries)},
                                geometry=self.geometries, crs=self.crs)


class FakeElevationProvider:
    """Elevation provider returning a fixed DEM."""

    def __init__(self, dem):
        self.dem = dem
        self.calls = []

    def fetch(self, boundary, zoom):
        self.calls.append((boundary.name, zoom))
        return self.dem


class FakeRenderer:
    """Renderer that writes the scene texture as the 'photorealistic' image."""

    def __init__(self):
        self.scenes = []

    def render(self, scene, environment_path, output_path):
        from PIL import Image

        self.scenes.append((scene, environment_path))
        size = scene.params.output_size(scene.height.shape)
        Image.fromarray(np.asarray(scene.texture)).resize(size).save(output_path)
        return Path(output_path)


@pytest.fixture
def fake_boundary_provider():
    from shapely.geometry import box

    return FakeBoundaryProvider([box(8.052, 46.052, 8.2, 46.348), box(8.2, 46.052, 8.348, 46.348)])


@pytest.fixture
def fake_elevation_provider(sample_elevation):
    return FakeElevationProvider(sample_elevation)


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def project_root():
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def make_categorical_tif():
    """Factory writing categorical GeoTIFFs (see write_categorical_tif)."""
    return write_categorical_tif


@pytest.fixture
def make_dem_tif():
    """Factory writing DEM GeoTIFFs (see write_dem_tif)."""
    return write_dem_tif


@pytest.fixture
def sample_palette():
    return dict(SAMPLE_PALETTE)
