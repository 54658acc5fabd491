import math

import numpy as np
import pytest

from fsi.hotspot import (
    NOT_SIGNIFICANT, HOTSPOT_95, HOTSPOT_99,
    circular_kernel, focal_statistics, gi_star_zscore,
    classify_zscores, classify_zscore, detect_hotspots,
)


@pytest.mark.parametrize("z, label", [
    (3.0, "hotspot-99"),
    (2.0, "hotspot-95"),
    (-2.0, "coldspot-95"),
    (0.5, "not-significant"),
    (2.58, "hotspot-95"),
    (1.96, "not-significant"),
    (float("nan"), "not-significant"),
])
def test_classify_single_zscore(z, label):
    assert classify_zscore(z) == label


def test_classes_are_mutually_exclusive():
    z = np.random.default_rng(0).normal(0, 2, 5000)
    hotspot_class, coldspot = classify_zscores(z)
    assert set(np.unique(hotspot_class)) <= {NOT_SIGNIFICANT, HOTSPOT_95, HOTSPOT_99}
    assert not np.any(coldspot & (hotspot_class != NOT_SIGNIFICANT))
    np.testing.assert_array_equal(hotspot_class == HOTSPOT_99, z > 2.58)


def test_kernel_below_one_pixel_is_single_cell():
    assert circular_kernel(0.5).shape == (1, 1)


def test_kernel_is_a_disk():
    k = circular_kernel(2)
    assert k.shape == (5, 5)
    assert int(k.sum()) == 13
    assert not k[0, 0]


def test_uniform_surface_has_undefined_z():
    fsi = np.full((20, 20), 0.3)
    hot = detect_hotspots(fsi, radius_m=300, pixel_size_m=100)
    assert np.isnan(hot["z_score"]).all()
    assert (hot["hotspot_class"] == NOT_SIGNIFICANT).all()
    assert not hot["coldspot_95"].any()


def test_isolated_peak_is_a_99_hotspot():
    fsi = np.zeros((21, 21))
    fsi[10, 10] = 1.0
    hot = detect_hotspots(fsi, radius_m=300, pixel_size_m=100)
    # 29-cell window with one non-zero cell → z = sqrt(28)
    assert hot["z_score"][10, 10] == pytest.approx(math.sqrt(28), rel=1e-6)
    assert hot["hotspot_class"][10, 10] == HOTSPOT_99
    assert hot["hotspot_99"].sum() == 1
    assert not hot["coldspot_95"].any()


def test_isolated_dip_is_a_coldspot():
    fsi = np.ones((21, 21))
    fsi[10, 10] = 0.0
    hot = detect_hotspots(fsi, radius_m=300, pixel_size_m=100)
    assert hot["z_score"][10, 10] == pytest.approx(-math.sqrt(28), rel=1e-6)
    assert hot["coldspot_95"][10, 10]
    assert hot["hotspot_class"][10, 10] == NOT_SIGNIFICANT


def test_zscores_never_infinite():
    fsi = np.random.default_rng(4).random((30, 30))
    fsi[:5, :5] = 0.5
    fsi[20, 20] = np.nan
    z = gi_star_zscore(fsi, radius_m=200, pixel_size_m=100)
    assert not np.isinf(z).any()
    assert np.isnan(z[20, 20])


def test_focal_mean_of_constant_field():
    mean, std = focal_statistics(np.full((10, 10), 0.7), radius_m=200, pixel_size_m=100)
    np.testing.assert_allclose(mean, 0.7)
    assert np.all(std < 1e-6)


def test_nan_pixels_are_ignored_in_window():
    fsi = np.full((9, 9), 0.4)
    fsi[4, 5] = np.nan
    mean, _ = focal_statistics(fsi, radius_m=100, pixel_size_m=100)
    assert mean[4, 4] == pytest.approx(0.4)
