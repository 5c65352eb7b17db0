"""
Tests for replacing class codes with colors.
"""

import logging
import tracemalloc

import numpy as np
import pytest
from PIL import Image
from rasterio.transform import from_origin


@pytest.fixture
def eight_code_raster():
    """Raster holding eight distinct codes plus nodata."""
    from src.landcover.artifacts import CategoricalRaster

    codes = np.array([1, 2, 4, 5, 7, 8, 9, 11], dtype=np.uint8)
    data = np.repeat(codes, 4).reshape(4, 8)
    data = np.vstack([data, np.zeros((1, 8), dtype=np.uint8)])
    return CategoricalRaster(data, from_origin(8.0, 46.4, 0.01, 0.01), "EPSG:4326", nodata=0)


@pytest.fixture
def class_table(sample_palette):
    """Every ESRI class, as the pipeline colorizes by default."""
    from src.landcover.color_mapping import curate_color_table, extract_color_table
    from src.landcover.pipeline import default_class_codes

    return curate_color_table(extract_color_table(sample_palette), default_class_codes())


@pytest.fixture
def legend_table(sample_palette):
    """Only the five legend classes."""
    from src.landcover.color_mapping import curate_color_table, extract_color_table
    from src.landcover.pipeline import PipelineConfig

    legend_codes = PipelineConfig(raster_path="a.tif", region_code="TST").legend_codes
    return curate_color_table(extract_color_table(sample_palette), legend_codes)


class TestColorize:
    """Tests for colorize."""

    def test_eight_codes_give_eight_colors(self, eight_code_raster, class_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, class_table)

        assert len(colors.unique_colors()) == 8
        assert (0, 0, 0) not in colors.unique_colors()
        assert colors.mask[:4].all()

    def test_default_classes_leave_no_holes(self, eight_code_raster, class_table, caplog):
        from src.landcover.colorizer import colorize

        with caplog.at_level(logging.WARNING, logger="src.landcover.colorizer"):
            colors = colorize(eight_code_raster, class_table, strict=True)

        data = eight_code_raster.data
        for code in (4, 8, 9):
            assert colors.mask[data == code].all()
        assert "missing from the color table" not in caplog.text

    def test_restricted_table_drops_other_codes(self, eight_code_raster, legend_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, legend_table)

        expected = {legend_table.rgb(code) for code in legend_table.codes}
        assert colors.unique_colors() == expected
        data = eight_code_raster.data
        for code in (4, 8, 9):
            assert not colors.mask[data == code].any()

    def test_same_grid_as_source(self, eight_code_raster, class_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, class_table)

        assert colors.shape == eight_code_raster.shape
        assert colors.transform == eight_code_raster.transform
        assert colors.crs == eight_code_raster.crs

    def test_nodata_and_unmapped_are_transparent_not_black(self, eight_code_raster, legend_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, legend_table)
        rgba = colors.to_rgba_image()

        assert np.all(rgba[-1, :, 3] == 0)
        assert np.all(rgba[colors.mask][:, 3] == 255)

    def test_mapped_cells_get_table_color(self, eight_code_raster, class_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, class_table)
        data = eight_code_raster.data

        for code in class_table.codes:
            cells = colors.rgb[:, data == code].T
            assert np.all(cells == class_table.rgb(code))

    def test_water_is_blue_not_black(self, eight_code_raster, class_table):
        from src.landcover.colorizer import colorize

        colors = colorize(eight_code_raster, class_table)
        water = colors.rgb[:, eight_code_raster.data == 1].T

        assert np.all(water == (65, 155, 223))

    def test_large_nodata_sentinel_keeps_lookup_small(self, class_table):
        from src.landcover.artifacts import CategoricalRaster
        from src.landcover.colorizer import colorize

        sentinel = np.iinfo(np.int32).max
        data = np.array([[1, 2], [11, sentinel]], dtype=np.int32)
        raster = CategoricalRaster(data, from_origin(0, 2, 1, 1), "EPSG:4326", nodata=sentinel)

        tracemalloc.start()
        try:
            colors = colorize(raster, class_table)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert peak < 10 * 1024 * 1024
        assert colors.mask.tolist() == [[True, True], [True, False]]

    def test_unmapped_codes_logged(self, eight_code_raster, legend_table, caplog):
        from src.landcover.colorizer import colorize

        with caplog.at_level(logging.WARNING, logger="src.landcover.colorizer"):
            colorize(eight_code_raster, legend_table)

        assert "missing from the color table" in caplog.text
        assert "8" in caplog.text

    def test_strict_mode_raises_with_codes(self, eight_code_raster, legend_table):
        from src.landcover.colorizer import colorize
        from src.landcover.errors import UnmappedCategoryError

        with pytest.raises(UnmappedCategoryError) as excinfo:
            colorize(eight_code_raster, legend_table, strict=True)

        assert excinfo.value.codes == [4, 8, 9]

    def test_strict_mode_passes_when_all_mapped(self, legend_table):
        from src.landcover.artifacts import CategoricalRaster
        from src.landcover.colorizer import colorize

        data = np.array([[1, 2], [5, 0]], dtype=np.uint8)
        raster = CategoricalRaster(data, from_origin(0, 2, 1, 1), "EPSG:4326")

        colors = colorize(raster, legend_table, strict=True)

        assert colors.mask.tolist() == [[True, True], [True, False]]

    def test_input_not_mutated(self, eight_code_raster, class_table):
        from src.landcover.colorizer import colorize

        before = eight_code_raster.data.copy()
        colorize(eight_code_raster, class_table)

        np.testing.assert_array_equal(eight_code_raster.data, before)


class TestSaveColorPreview:
    """Tests for save_color_preview."""

    def test_writes_rgb_png_with_background(self, tmp_path, sample_color_raster):
        from src.landcover.colorizer import save_color_preview

        path = save_color_preview(sample_color_raster, tmp_path / "preview.png")

        with Image.open(path) as image:
            assert image.mode == "RGB"
            assert image.size == (40, 40)
            # Nodata rim is white
            assert image.getpixel((0, 0)) == (255, 255, 255)
