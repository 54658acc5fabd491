import numpy as np
import pytest

import config
from fsi.pca import WeightVector
from fsi.flood_model import compute_fsi, composite_fsi, classify_risk


def _uniform_weights():
    n = len(config.FACTOR_NAMES)
    return {name: 1.0 / n for name in config.FACTOR_NAMES}


def _random_vuln(shape=(40, 30), seed=11):
    rng = np.random.default_rng(seed)
    return {name: rng.random(shape) for name in config.FACTOR_NAMES}


def test_fsi_is_weighted_sum():
    vuln = {name: np.full((2, 2), v) for name, v in
            zip(config.FACTOR_NAMES, [0.2, 0.4, 1.0, 0.0, 0.8, 0.5])}
    weights = dict(zip(config.FACTOR_NAMES, [0.1, 0.2, 0.1, 0.2, 0.3, 0.1]))
    expected = 0.02 + 0.08 + 0.1 + 0.0 + 0.24 + 0.05
    np.testing.assert_allclose(compute_fsi(vuln, weights), expected)


def test_fsi_stays_in_unit_interval():
    rng = np.random.default_rng(2)
    raw = rng.random(6)
    weights = dict(zip(config.FACTOR_NAMES, raw / raw.sum()))
    fsi = compute_fsi(_random_vuln(), weights)
    assert fsi.min() >= 0.0
    assert fsi.max() <= 1.0


def test_all_ones_vulnerability_gives_one():
    vuln = {name: np.ones((3, 3)) for name in config.FACTOR_NAMES}
    np.testing.assert_allclose(compute_fsi(vuln, _uniform_weights()), 1.0)


def test_accepts_weight_vector():
    values = np.full(6, 1 / 6)
    wv = WeightVector(names=list(config.FACTOR_NAMES), values=values)
    vuln = _random_vuln((5, 5))
    np.testing.assert_allclose(compute_fsi(vuln, wv), compute_fsi(vuln, _uniform_weights()))


def test_missing_layer_raises():
    vuln = _random_vuln((5, 5))
    del vuln["rainfall"]
    with pytest.raises(ValueError, match="rainfall"):
        compute_fsi(vuln, _uniform_weights())


def test_nan_pixels_propagate():
    vuln = _random_vuln((4, 4))
    vuln["slope"][1, 2] = np.nan
    fsi = compute_fsi(vuln, _uniform_weights())
    assert np.isnan(fsi[1, 2])
    assert np.isnan(fsi).sum() == 1


def test_parallel_composite_matches_single_process():
    vuln = _random_vuln((41, 23))
    weights = dict(zip(config.FACTOR_NAMES, [0.3, 0.1, 0.05, 0.25, 0.2, 0.1]))
    serial = composite_fsi(vuln, weights, n_workers=1)
    parallel = composite_fsi(vuln, weights, n_workers=2, min_parallel_pixels=0)
    np.testing.assert_allclose(parallel, serial)


def test_classify_risk_thresholds():
    fsi = np.array([0.1, 0.3, 0.45, 0.6, 0.9, np.nan])
    np.testing.assert_array_equal(classify_risk(fsi), [1, 1, 2, 2, 3, 0])


def test_weights_must_cover_every_factor():
    weights = _uniform_weights()
    del weights["ndvi"]
    with pytest.raises(ValueError, match="ndvi"):
        compute_fsi(_random_vuln((5, 5)), weights)
