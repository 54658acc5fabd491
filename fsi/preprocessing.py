"""
Preprocessing Module – Normalise the six raw factors into [0, 1] vulnerability.

    inverse      : 1 - clamp((x - min) / (max - min), 0, 1)   elevation, slope, ndvi, distance
    direct       :     clamp((x - min) / (max - min), 0, 1)   rainfall
    directional  : (cos(aspect_rad - peak_rad) + 1) / 2        aspect (peak = West)
"""

import numpy as np

import config


def unit_scale(x, vmin: float, vmax: float):
    """Linear rescale of [vmin, vmax] onto [0, 1], clamped at both ends."""
    if not vmax > vmin:
        raise ValueError(f"Invalid domain [{vmin}, {vmax}]: max must exceed min")
    scaled = (np.asarray(x, dtype=np.float64) - vmin) / (vmax - vmin)
    return np.clip(scaled, 0.0, 1.0)


def inverse_linear(x, vmin: float, vmax: float):
    """Lower value → higher flood risk."""
    return 1.0 - unit_scale(x, vmin, vmax)


def direct_linear(x, vmin: float, vmax: float):
    """Higher value → higher flood risk."""
    return unit_scale(x, vmin, vmax)


def directional_cosine(aspect_deg, peak_deg: float = config.ASPECT_PEAK_DEG):
    """
    Cosine similarity of the slope bearing to the peak-risk bearing,
    rescaled from [-1, 1] to [0, 1].  1.0 at the peak, 0.0 opposite it.
    """
    aspect_rad = np.mod(np.asarray(aspect_deg, dtype=np.float64), 360.0) * np.pi / 180.0
    peak_rad = peak_deg * np.pi / 180.0
    vuln = (np.cos(aspect_rad - peak_rad) + 1.0) / 2.0
    return np.clip(vuln, 0.0, 1.0)


def normalize_factor(name: str, values, domains: dict = None,
                     aspect_peak_deg: float = None):
    """Normalise a single named factor according to its declared relation."""
    domains = domains or config.VULNERABILITY_DOMAINS
    if name not in domains:
        raise ValueError(f"No vulnerability domain declared for factor '{name}'")

    spec = domains[name]
    relation = spec["relation"]
    if relation == "inverse":
        return inverse_linear(values, spec["min"], spec["max"])
    if relation == "direct":
        return direct_linear(values, spec["min"], spec["max"])
    if relation == "directional":
        peak = aspect_peak_deg if aspect_peak_deg is not None else spec.get("peak", config.ASPECT_PEAK_DEG)
        return directional_cosine(values, peak)
    raise ValueError(f"Unknown relation '{relation}' for factor '{name}'")


def normalize_factors(
    factors: dict,
    domains: dict = None,
    aspect_peak_deg: float = None,
    names: list = None,
) -> dict:
    """
    Map a raw factor stack {name: array} to a vulnerability stack with the
    same keys, in the fixed factor order.  All factors must be present.
    """
    names = names or config.FACTOR_NAMES
    missing = [n for n in names if n not in factors]
    if missing:
        raise ValueError(f"Factor stack is missing: {', '.join(missing)}")

    vuln = {}
    for name in names:
        vuln[name] = normalize_factor(name, factors[name], domains, aspect_peak_deg)
    print(f"[PRE] {len(vuln)} factors normalised to vulnerability scale")
    return vuln


def validate_range(array, label: str) -> dict:
    """Check that an array's valid values lie in [0, 1]."""
    arr = np.asarray(array, dtype=np.float64)
    valid = arr[~np.isnan(arr)]
    if valid.size == 0:
        stats = {"min": None, "max": None, "mean": None, "in_range": False}
    else:
        vmin, vmax = float(valid.min()), float(valid.max())
        stats = {
            "min": vmin,
            "max": vmax,
            "mean": float(valid.mean()),
            "in_range": vmin >= 0.0 and vmax <= 1.0,
        }
    print(f"[VAL] {label}: {stats}")
    return stats
