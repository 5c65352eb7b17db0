"""
Tests for transform operations.

Covers majority-vote aggregation of categorical rasters, elevation scaling
and reprojection.
"""

import numpy as np
import pytest
from rasterio.transform import from_origin


class TestAggregateCategorical:
    """Tests for aggregate_categorical majority vote."""

    @pytest.mark.parametrize("factor", [1, 2, 3, 4])
    def test_block_uniform_equals_corner_downsampling(self, factor):
        """A raster uniform within every k x k block aggregates to its block corners."""
        from src.landcover.transforms import aggregate_categorical

        rng = np.random.default_rng(42)
        coarse = rng.integers(1, 12, size=(5, 6), dtype=np.uint8)
        fine = np.kron(coarse, np.ones((factor, factor), dtype=np.uint8))

        aggregated, _, _ = aggregate_categorical(factor)(fine)

        np.testing.assert_array_equal(aggregated, fine[::factor, ::factor])

    def test_factor_one_is_identity_copy(self):
        """Factor 1 returns an equal array that is not the input object."""
        from src.landcover.transforms import aggregate_categorical

        data = np.arange(12, dtype=np.uint8).reshape(3, 4)
        transform = from_origin(0, 3, 1, 1)

        result, new_transform, crs = aggregate_categorical(1)(data, transform)

        np.testing.assert_array_equal(result, data)
        assert result is not data
        assert new_transform == transform
        assert crs is None

    def test_majority_wins(self):
        """The most frequent code in a block wins."""
        from src.landcover.transforms import aggregate_categorical

        data = np.array([[2, 2], [2, 5]], dtype=np.uint8)
        result, _, _ = aggregate_categorical(2)(data)

        assert result.tolist() == [[2]]

    def test_tie_goes_to_lowest_code(self):
        """Equal counts resolve to the lowest class code."""
        from src.landcover.transforms import aggregate_categorical

        data = np.array([[7, 7], [3, 3]], dtype=np.uint8)
        result, _, _ = aggregate_categorical(2)(data)

        assert result.tolist() == [[3]]

    def test_nodata_does_not_vote(self):
        """Nodata cells never outvote a real class."""
        from src.landcover.transforms import aggregate_categorical

        data = np.array([[0, 0], [0, 4]], dtype=np.uint8)
        result, _, _ = aggregate_categorical(2, nodata_value=0)(data)

        assert result.tolist() == [[4]]

    def test_all_nodata_block_stays_nodata(self):
        """A block made only of nodata stays nodata."""
        from src.landcover.transforms import aggregate_categorical

        data = np.zeros((4, 4), dtype=np.uint8)
        data[:2, :2] = 9
        result, _, _ = aggregate_categorical(2, nodata_value=0)(data)

        assert result.tolist() == [[9, 0], [0, 0]]

    def test_partial_edge_blocks_are_kept(self):
        """Output shape is ceil(H / k) x ceil(W / k)."""
        from src.landcover.transforms import aggregate_categorical

        data = np.ones((7, 10), dtype=np.uint8)
        result, _, _ = aggregate_categorical(3)(data)

        assert result.shape == (3, 4)
        assert np.all(result == 1)

    def test_output_codes_subset_of_input(self):
        """Aggregation never invents codes."""
        from src.landcover.transforms import aggregate_categorical

        rng = np.random.default_rng(0)
        data = rng.choice(np.array([0, 1, 2, 5, 11], dtype=np.uint8), size=(31, 29))
        result, _, _ = aggregate_categorical(4)(data)

        assert set(np.unique(result)) <= set(np.unique(data))

    def test_transform_is_scaled(self):
        """Cell size grows by the factor; the origin stays put."""
        from src.landcover.transforms import aggregate_categorical

        transform = from_origin(8.0, 46.4, 0.01, 0.01)
        _, new_transform, _ = aggregate_categorical(5)(np.ones((10, 10), dtype=np.uint8), transform)

        assert new_transform.a == pytest.approx(0.05)
        assert new_transform.e == pytest.approx(-0.05)
        assert (new_transform.c, new_transform.f) == (8.0, 46.4)

    @pytest.mark.parametrize("factor", [0, -2, 1.5])
    def test_invalid_factor_raises(self, factor):
        from src.landcover.transforms import aggregate_categorical

        with pytest.raises(ValueError):
            aggregate_categorical(factor)


class TestScaleElevation:
    """Tests for scale_elevation."""

    def test_scales_values_and_keeps_nan(self):
        from src.landcover.transforms import scale_elevation

        data = np.array([[1.0, np.nan], [2.0, 3.0]], dtype=np.float32)
        scaled, transform, crs = scale_elevation(10.0)(data)

        assert np.isnan(scaled[0, 1])
        np.testing.assert_allclose(scaled[[0, 1, 1], [0, 0, 1]], [10.0, 20.0, 30.0])
        assert transform is None and crs is None

    def test_does_not_modify_input(self):
        from src.landcover.transforms import scale_elevation

        data = np.ones((3, 3), dtype=np.float32)
        scale_elevation(2.0)(data)

        assert np.all(data == 1.0)


class TestReprojectRaster:
    """Tests for reproject_raster."""

    def test_same_crs_is_noop(self):
        """Reprojecting into the source CRS returns identical data and transform."""
        from src.landcover.transforms import reproject_raster

        data = np.random.default_rng(1).random((20, 30)).astype(np.float32)
        transform = from_origin(8.0, 46.4, 0.01, 0.01)

        result, new_transform, crs = reproject_raster("EPSG:4326", "EPSG:4326")(data, transform)

        np.testing.assert_array_equal(result, data)
        assert new_transform == transform
        assert crs.to_epsg() == 4326

    def test_same_crs_categorical_is_noop(self):
        from rasterio.warp import Resampling

        from src.landcover.transforms import reproject_raster

        data = np.random.default_rng(2).integers(0, 12, size=(8, 8), dtype=np.uint8)
        transform = from_origin(0, 8, 1, 1)

        result, _, _ = reproject_raster(
            "EPSG:32632", "EPSG:32632", nodata_value=0, resampling=Resampling.nearest
        )(data, transform)

        np.testing.assert_array_equal(result, data)

    def test_reproject_changes_crs(self):
        from src.landcover.transforms import reproject_raster

        data = np.ones((20, 20), dtype=np.float32)
        transform = from_origin(8.0, 46.4, 0.01, 0.01)

        result, new_transform, crs = reproject_raster("EPSG:4326", "EPSG:3857")(data, transform)

        assert crs.to_epsg() == 3857
        assert new_transform.c == pytest.approx(8.0 * 111319.49, rel=1e-3)
        assert np.nanmax(result) == pytest.approx(1.0)

    def test_dst_shape_is_respected(self):
        from src.landcover.transforms import reproject_raster

        data = np.ones((20, 30), dtype=np.float32)
        transform = from_origin(8.0, 46.4, 0.01, 0.01)

        result, _, _ = reproject_raster("EPSG:4326", "EPSG:3857", dst_shape=(20, 30))(
            data, transform
        )

        assert result.shape == (20, 30)

    def test_nearest_keeps_categories(self):
        """Nearest-neighbour reprojection introduces no new codes."""
        from rasterio.warp import Resampling

        from src.landcover.transforms import reproject_raster

        data = np.zeros((30, 30), dtype=np.uint8)
        data[:, :10] = 1
        data[:, 10:20] = 5
        data[:, 20:] = 11
        transform = from_origin(8.0, 46.4, 0.01, 0.01)

        result, _, _ = reproject_raster(
            "EPSG:4326", "EPSG:3857", nodata_value=0, resampling=Resampling.nearest
        )(data, transform)

        assert set(np.unique(result)) <= {0, 1, 5, 11}
        assert {1, 5, 11} <= set(np.unique(result))
