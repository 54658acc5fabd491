import numpy as np
import pytest

from fsi.raster_io import meta_from_bounds


@pytest.fixture
def factor_stack():
    """30×30 raw factors with a west→east terrain gradient plus noise."""
    rng = np.random.default_rng(7)
    rows, cols = 30, 30
    yy, xx = np.mgrid[0:rows, 0:cols]
    noise = lambda scale: rng.normal(0.0, scale, (rows, cols))
    return {
        "elevation": 50.0 + 60.0 * xx + noise(20.0),
        "slope": np.clip(2.0 + 1.5 * xx + noise(2.0), 0.0, None),
        "aspect": (12.0 * yy + noise(10.0)) % 360.0,
        "ndvi": np.clip(0.2 + 0.02 * xx + noise(0.05), 0.0, 1.0),
        "rainfall": 380.0 - 8.0 * xx + noise(10.0),
        "distance": np.abs(100.0 + 250.0 * yy + noise(50.0)),
    }


@pytest.fixture
def grid_meta():
    """~300 m pixels over a small Kerala tile."""
    return meta_from_bounds((76.0, 10.0, 76.081, 10.081), 30, 30, scale=300)
