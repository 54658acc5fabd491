"""
Validation Module – Compare FSI hotspots with a SAR-observed flood extent.

Flood extent (ratio method):
    ratio = speckle_filtered(before) / speckle_filtered(after)
    flood = ratio > 1.5

Overlap:
    overlap % = |hotspot_99 ∩ flood| / |flood| × 100   (0 % when no flood pixels)
"""

import numpy as np
from scipy import ndimage

import config
from fsi.hotspot import circular_kernel, CLASS_LABELS


def speckle_filter(
    backscatter: np.ndarray,
    radius_m: float = config.SPECKLE_RADIUS_M,
    pixel_size_m: float = config.ANALYSIS_SCALE,
) -> np.ndarray:
    """Circular focal median.  A radius below one pixel leaves the image unchanged."""
    footprint = circular_kernel(radius_m / pixel_size_m)
    arr = np.asarray(backscatter, dtype=np.float64)
    if footprint.size == 1:
        return arr.copy()
    return ndimage.median_filter(arr, footprint=footprint, mode="nearest")


def flood_mask_from_ratio(
    before: np.ndarray,
    after: np.ndarray,
    threshold: float = config.SAR_RATIO_THRESHOLD,
) -> np.ndarray:
    """
    Binary flood mask from the before/after backscatter ratio.
    Zero or missing denominators never count as flooded.
    """
    before = np.asarray(before, dtype=np.float64)
    after = np.asarray(after, dtype=np.float64)
    if before.shape != after.shape:
        raise ValueError(f"SAR grids differ: before {before.shape} vs after {after.shape}")

    usable = ~np.isnan(before) & ~np.isnan(after) & (after != 0)
    ratio = np.full(before.shape, np.nan)
    ratio[usable] = before[usable] / after[usable]

    flood = np.zeros(before.shape, dtype=bool)
    flood[usable] = ratio[usable] > threshold
    print(f"[VAL] SAR flood extent – {int(flood.sum())} flooded pixels of "
          f"{int(usable.sum())} usable (ratio > {threshold})")
    return flood


def compute_overlap(hotspot_99: np.ndarray, flood_mask: np.ndarray) -> dict:
    """
    Pixel counts for hotspots, flood and their intersection.

    Both layers must already share a grid.  With no flood pixels the overlap
    is reported as 0 % and flagged ``insufficient_data``.
    """
    hotspot = np.asarray(hotspot_99).astype(bool)
    flood = np.asarray(flood_mask).astype(bool)
    if hotspot.shape != flood.shape:
        raise ValueError(
            f"Layers are not co-registered: hotspot {hotspot.shape} vs flood {flood.shape}. "
            "Resample to a common grid first."
        )

    hotspot_count = int(hotspot.sum())
    flood_count = int(flood.sum())
    intersection = int((hotspot & flood).sum())

    insufficient = flood_count == 0
    overlap_pct = 0.0 if insufficient else intersection / flood_count * 100.0

    report = {
        "hotspot_pixels": hotspot_count,
        "flood_pixels": flood_count,
        "intersection_pixels": intersection,
        "overlap_pct": round(overlap_pct, 2),
        "insufficient_data": insufficient,
    }

    print("[VAL] === HOTSPOT VALIDATION RESULTS ===")
    print(f"      Hotspot area (pixels):      {hotspot_count}")
    print(f"      Flooded area (pixels):      {flood_count}")
    print(f"      Intersection area (pixels): {intersection}")
    if insufficient:
        print("[VAL] ⚠ No flooded pixels – overlap reported as 0% (insufficient data)")
    else:
        print(f"      Flooded area within hotspots: {overlap_pct:.2f}%")
    return report


def mean_fsi_by_flood_class(fsi: np.ndarray, flood_mask: np.ndarray) -> dict:
    """Mean FSI per flood class {0: dry, 1: flooded}; empty classes are omitted."""
    fsi = np.asarray(fsi, dtype=np.float64)
    flood = np.asarray(flood_mask).astype(bool)
    if fsi.shape != flood.shape:
        raise ValueError(f"FSI {fsi.shape} and flood mask {flood.shape} are not co-registered")

    valid = ~np.isnan(fsi)
    groups = {}
    for flood_class, members in ((0, valid & ~flood), (1, valid & flood)):
        if members.any():
            groups[flood_class] = {
                "mean_fsi": round(float(fsi[members].mean()), 4),
                "pixels": int(members.sum()),
            }
    print(f"[VAL] Mean FSI by flood class: {groups}")
    return groups


def _value_at(array, row: int, col: int):
    value = array[row, col]
    if isinstance(value, (np.bool_, bool)):
        return bool(value)
    value = float(value)
    return None if np.isnan(value) else value


def check_known_flood_cities(layers: dict, meta: dict, cities: list = None) -> list[dict]:
    """
    Sample FSI, z-score and hotspot class at the known flood cities.
    Cities outside the grid come back with ``inside=False`` and no values.
    """
    cities = cities if cities is not None else config.FLOOD_CITIES
    transform = meta["transform"]
    rows, cols = meta["height"], meta["width"]

    results = []
    for city in cities:
        col_f, row_f = ~transform * (city["lon"], city["lat"])
        row, col = int(np.floor(row_f)), int(np.floor(col_f))
        entry = {"name": city["name"], "lat": city["lat"], "lon": city["lon"]}

        if 0 <= row < rows and 0 <= col < cols:
            entry["inside"] = True
            entry["fsi"] = _value_at(layers["fsi"], row, col)
            entry["z_score"] = _value_at(layers["z_score"], row, col)
            entry["hotspot_class"] = CLASS_LABELS[int(layers["hotspot_class"][row, col])]
            entry["coldspot_95"] = _value_at(layers["coldspot_95"], row, col)
        else:
            entry.update({"inside": False, "fsi": None, "z_score": None,
                          "hotspot_class": None, "coldspot_95": None})
        results.append(entry)

    inside = [c for c in results if c["inside"]]
    in_hot = [c for c in inside if c["hotspot_class"] != CLASS_LABELS[0]]
    print(f"[VAL] Known flood cities: {len(inside)}/{len(results)} inside grid, "
          f"{len(in_hot)} on a significant hotspot")
    return results
