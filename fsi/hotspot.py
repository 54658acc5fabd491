"""
Hotspot Module – Local Gi*-style z-scores of FSI and confidence classes.

    z(x) = (FSI(x) - mean_r(x)) / std_r(x)

where mean_r / std_r are taken over a circular window of radius r (5 km).
A uniform window has no defined z; those pixels are not significant.
"""

import numpy as np
from scipy import ndimage

import config

NOT_SIGNIFICANT = 0
HOTSPOT_95 = 1
HOTSPOT_99 = 2

CLASS_LABELS = {
    NOT_SIGNIFICANT: "not-significant",
    HOTSPOT_95: "hotspot-95",
    HOTSPOT_99: "hotspot-99",
}


def circular_kernel(radius_px: float) -> np.ndarray:
    """Boolean disk footprint; a radius below one pixel is the pixel itself."""
    r = int(np.floor(radius_px))
    if r < 1:
        return np.ones((1, 1), dtype=bool)
    y, x = np.ogrid[-r:r + 1, -r:r + 1]
    return (x * x + y * y) <= radius_px * radius_px


def focal_statistics(
    fsi: np.ndarray,
    radius_m: float = config.HOTSPOT_RADIUS_M,
    pixel_size_m: float = config.ANALYSIS_SCALE,
) -> tuple[np.ndarray, np.ndarray]:
    """
    NaN-aware focal mean and population standard deviation in a circle.
    Windows with no valid pixel return NaN.
    """
    fsi = np.asarray(fsi, dtype=np.float64)
    kernel = circular_kernel(radius_m / pixel_size_m).astype(np.float64)

    valid = ~np.isnan(fsi)
    filled = np.where(valid, fsi, 0.0)

    count = ndimage.convolve(valid.astype(np.float64), kernel, mode="constant", cval=0.0)
    total = ndimage.convolve(filled, kernel, mode="constant", cval=0.0)
    total_sq = ndimage.convolve(filled * filled, kernel, mode="constant", cval=0.0)

    with np.errstate(invalid="ignore", divide="ignore"):
        mean = np.where(count > 0, total / count, np.nan)
        variance = np.where(count > 0, total_sq / count - mean * mean, np.nan)
    std = np.sqrt(np.clip(variance, 0.0, None))

    print(f"[HOT] Focal statistics – radius {radius_m} m "
          f"({kernel.shape[0]}×{kernel.shape[1]} px kernel, {int(kernel.sum())} cells)")
    return mean, std


def gi_star_zscore(
    fsi: np.ndarray,
    radius_m: float = config.HOTSPOT_RADIUS_M,
    pixel_size_m: float = config.ANALYSIS_SCALE,
    min_std: float = config.MIN_STDDEV,
) -> np.ndarray:
    """Local z-score of FSI; NaN where the neighbourhood is uniform or empty."""
    fsi = np.asarray(fsi, dtype=np.float64)
    mean, std = focal_statistics(fsi, radius_m, pixel_size_m)
    defined = ~np.isnan(fsi) & ~np.isnan(std) & (std > min_std)

    z = np.full(fsi.shape, np.nan, dtype=np.float64)
    z[defined] = (fsi[defined] - mean[defined]) / std[defined]
    return z


def classify_zscores(
    z: np.ndarray,
    z95: float = config.Z_95,
    z99: float = config.Z_99,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Returns (hotspot_class, coldspot_95):
        hotspot_class – 2 if z > z99, 1 if z95 < z ≤ z99, else 0
        coldspot_95   – z < -z95, independent of the hotspot class
    NaN z-scores are not significant in either sense.
    """
    z = np.asarray(z, dtype=np.float64)
    defined = ~np.isnan(z)

    hotspot_class = np.full(z.shape, NOT_SIGNIFICANT, dtype=np.uint8)
    hotspot_class[defined & (z > z95) & (z <= z99)] = HOTSPOT_95
    hotspot_class[defined & (z > z99)] = HOTSPOT_99
    coldspot_95 = defined & (z < -z95)
    return hotspot_class, coldspot_95


def classify_zscore(z: float) -> str:
    """Label of a single z-score."""
    hotspot_class, coldspot = classify_zscores(np.array([z]))
    if coldspot[0]:
        return "coldspot-95"
    return CLASS_LABELS[int(hotspot_class[0])]


def detect_hotspots(
    fsi: np.ndarray,
    radius_m: float = config.HOTSPOT_RADIUS_M,
    pixel_size_m: float = config.ANALYSIS_SCALE,
    z95: float = config.Z_95,
    z99: float = config.Z_99,
) -> dict:
    """Z-scores plus confidence classes for a whole FSI grid."""
    z = gi_star_zscore(fsi, radius_m, pixel_size_m)
    hotspot_class, coldspot_95 = classify_zscores(z, z95, z99)

    result = {
        "z_score": z,
        "hotspot_class": hotspot_class,
        "coldspot_95": coldspot_95,
        "hotspot_99": hotspot_class == HOTSPOT_99,
        "hotspot_95": hotspot_class == HOTSPOT_95,
    }
    print(f"[HOT] Hotspots 99%: {int(result['hotspot_99'].sum())}  |  "
          f"95%: {int(result['hotspot_95'].sum())}  |  "
          f"Coldspots 95%: {int(coldspot_95.sum())}  |  "
          f"undefined z: {int(np.isnan(z).sum())}")
    return result
