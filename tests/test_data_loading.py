"""
Tests for raster reading and writing.
"""

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin


class TestLoadCategoricalRaster:
    """Tests for load_categorical_raster and read_palette."""

    def test_loads_codes_palette_and_georeferencing(self, landcover_tif, landcover_data):
        from src.landcover.data_loading import load_categorical_raster

        raster = load_categorical_raster(landcover_tif)

        np.testing.assert_array_equal(raster.data, landcover_data)
        assert raster.nodata == 0
        assert raster.crs.to_epsg() == 4326
        assert raster.palette[2][:3] == (53, 130, 33)
        assert raster.palette[1][:3] == (0, 0, 0)

    def test_missing_file_raises_raster_load_error(self, tmp_path):
        from src.landcover.data_loading import load_categorical_raster
        from src.landcover.errors import RasterLoadError

        with pytest.raises(RasterLoadError):
            load_categorical_raster(tmp_path / "missing.tif")

    def test_unreadable_file_raises_raster_load_error(self, tmp_path):
        from src.landcover.data_loading import load_categorical_raster
        from src.landcover.errors import RasterLoadError

        bogus = tmp_path / "bogus.tif"
        bogus.write_text("not a raster")

        with pytest.raises(RasterLoadError):
            load_categorical_raster(bogus)

    def test_raster_load_error_is_os_error(self, tmp_path):
        """Callers can catch the builtin OSError too."""
        from src.landcover.data_loading import load_categorical_raster

        with pytest.raises(OSError):
            load_categorical_raster(tmp_path / "missing.tif")

    def test_read_palette_without_color_table(self, tmp_path, landcover_data, make_categorical_tif):
        from src.landcover.data_loading import read_palette

        path = make_categorical_tif(tmp_path / "plain.tif", landcover_data, palette=None)

        assert read_palette(path) is None

    def test_loaded_raster_is_read_only(self, landcover_tif):
        from src.landcover.data_loading import load_categorical_raster

        raster = load_categorical_raster(landcover_tif)

        with pytest.raises(ValueError):
            raster.data[0, 0] = 3


class TestWriteRasters:
    """Tests for the GeoTIFF/VRT writers."""

    def test_categorical_round_trip_keeps_palette(self, tmp_path, landcover_tif):
        from src.landcover.data_loading import load_categorical_raster, write_categorical_raster

        raster = load_categorical_raster(landcover_tif)
        out = write_categorical_raster(raster, tmp_path / "out" / "copy.tif")
        again = load_categorical_raster(out)

        np.testing.assert_array_equal(again.data, raster.data)
        assert again.transform == raster.transform
        assert again.palette[7] == raster.palette[7]

    def test_virtual_mosaic_references_source(self, tmp_path, landcover_tif):
        from src.landcover.data_loading import write_virtual_mosaic

        vrt = write_virtual_mosaic(landcover_tif, tmp_path / "landcover.vrt")

        assert vrt.exists()
        with rasterio.open(vrt) as src, rasterio.open(landcover_tif) as ref:
            assert src.driver == "VRT"
            np.testing.assert_array_equal(src.read(1), ref.read(1))

    def test_color_raster_alpha_is_mask(self, tmp_path, sample_color_raster):
        from src.landcover.data_loading import load_color_raster, write_color_raster

        path = write_color_raster(sample_color_raster, tmp_path / "color.tif")

        with rasterio.open(path) as src:
            assert src.count == 4
            alpha = src.read(4)
        np.testing.assert_array_equal(alpha > 0, sample_color_raster.mask)

        loaded = load_color_raster(path)
        np.testing.assert_array_equal(loaded.rgb, sample_color_raster.rgb)

    def test_load_color_raster_rejects_single_band(self, landcover_tif):
        from src.landcover.data_loading import load_color_raster
        from src.landcover.errors import RasterLoadError

        with pytest.raises(RasterLoadError):
            load_color_raster(landcover_tif)

    def test_elevation_nodata_becomes_nan(self, tmp_path, make_dem_tif):
        from src.landcover.data_loading import load_elevation_raster

        data = np.full((5, 5), 100.0, dtype=np.float32)
        data[0, 0] = -9999.0
        path = make_dem_tif(tmp_path / "dem.tif", data, from_origin(0, 5, 1, 1))

        dem = load_elevation_raster(path)

        assert np.isnan(dem.data[0, 0])
        assert dem.data[1, 1] == 100.0


class TestLoadDemFiles:
    """Tests for DEM tile merging."""

    def test_merges_adjacent_tiles(self, tmp_path, make_dem_tif):
        from src.landcover.data_loading import load_dem_files

        make_dem_tif(tmp_path / "a.tif", np.full((10, 10), 100.0), from_origin(8.0, 46.1, 0.01, 0.01))
        make_dem_tif(tmp_path / "b.tif", np.full((10, 10), 200.0), from_origin(8.1, 46.1, 0.01, 0.01))

        dem = load_dem_files(tmp_path, pattern="*.tif")

        assert dem.shape == (10, 20)
        assert dem.data[0, 0] == 100.0
        assert dem.data[0, -1] == 200.0
        assert dem.crs.to_epsg() == 4326

    def test_merge_dem_files_uses_only_given_paths(self, tmp_path, make_dem_tif):
        from src.landcover.data_loading import merge_dem_files

        a = make_dem_tif(tmp_path / "a.tif", np.full((10, 10), 1.0), from_origin(8.0, 46.1, 0.01, 0.01))
        make_dem_tif(tmp_path / "far.tif", np.full((10, 10), 2.0), from_origin(20.0, 50.0, 0.01, 0.01))

        dem = merge_dem_files([a])

        assert dem.shape == (10, 10)

    def test_missing_directory_raises(self, tmp_path):
        from src.landcover.data_loading import load_dem_files

        with pytest.raises(ValueError, match="does not exist"):
            load_dem_files(tmp_path / "nope")

    def test_no_matching_files_raises(self, tmp_path):
        from src.landcover.data_loading import load_dem_files

        with pytest.raises(ValueError, match="No files matching"):
            load_dem_files(tmp_path, pattern="*.hgt")

    def test_rejects_categorical_tiles(self, tmp_path, landcover_tif):
        """uint8 rasters are not elevation data."""
        from src.landcover.data_loading import merge_dem_files

        with pytest.raises(ValueError, match="No valid DEM files"):
            merge_dem_files([landcover_tif])
