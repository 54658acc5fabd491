import math

import numpy as np
import pytest

import config
from fsi.preprocessing import (
    unit_scale, inverse_linear, direct_linear, directional_cosine,
    normalize_factor, normalize_factors, validate_range,
)


def test_inverse_linear_domain_ends():
    assert inverse_linear(0, 0, 2500) == pytest.approx(1.0)
    assert inverse_linear(2500, 0, 2500) == pytest.approx(0.0)


def test_elevation_midpoint_is_half():
    assert inverse_linear(1250, 0, 2500) == pytest.approx(0.5)


def test_direct_linear_domain_ends():
    assert direct_linear(50, 50, 400) == pytest.approx(0.0)
    assert direct_linear(400, 50, 400) == pytest.approx(1.0)


def test_out_of_domain_values_clamp():
    assert inverse_linear(-300, 0, 2500) == pytest.approx(1.0)
    assert inverse_linear(8000, 0, 2500) == pytest.approx(0.0)
    assert direct_linear(10, 50, 400) == pytest.approx(0.0)
    assert direct_linear(900, 50, 400) == pytest.approx(1.0)


def test_degenerate_domain_raises():
    with pytest.raises(ValueError):
        unit_scale(1.0, 5.0, 5.0)


def test_aspect_peak_and_opposite_bearing():
    assert directional_cosine(270) == pytest.approx(1.0)
    assert directional_cosine(90) == pytest.approx(0.0, abs=1e-12)


def test_aspect_follows_cosine_not_linear():
    # 45° off the peak: linear interpolation would give 0.75
    expected = (math.cos(math.radians(-45)) + 1) / 2
    assert directional_cosine(225) == pytest.approx(expected)
    assert directional_cosine(180) == pytest.approx(0.5)


def test_aspect_wraps_modulo_360():
    assert directional_cosine(630) == pytest.approx(1.0)
    assert directional_cosine(-90) == pytest.approx(1.0)


def test_aspect_increases_from_opposite_to_peak():
    values = directional_cosine(np.linspace(90, 270, 50))
    assert np.all(np.diff(values) >= 0)


def test_custom_peak_bearing():
    assert directional_cosine(0, peak_deg=0) == pytest.approx(1.0)
    assert directional_cosine(180, peak_deg=0) == pytest.approx(0.0, abs=1e-12)


def test_nan_pixels_stay_nan():
    out = inverse_linear(np.array([np.nan, 0.0]), 0, 1)
    assert np.isnan(out[0])
    assert out[1] == pytest.approx(1.0)


def test_normalize_factor_rejects_unknown_name():
    with pytest.raises(ValueError):
        normalize_factor("soil", np.zeros(3))


def test_normalize_factors_keeps_order_and_range(factor_stack):
    vuln = normalize_factors(factor_stack)
    assert list(vuln) == config.FACTOR_NAMES
    for arr in vuln.values():
        assert arr.shape == (30, 30)
        assert np.nanmin(arr) >= 0.0
        assert np.nanmax(arr) <= 1.0


def test_normalize_factors_missing_factor(factor_stack):
    del factor_stack["ndvi"]
    with pytest.raises(ValueError, match="ndvi"):
        normalize_factors(factor_stack)


def test_validate_range_reports_summary():
    stats = validate_range(np.array([0.0, 0.5, 1.0, np.nan]), "probe")
    assert stats["min"] == 0.0
    assert stats["max"] == 1.0
    assert stats["in_range"] is True
