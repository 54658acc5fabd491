"""
Pipeline – Factors → Vulnerability → PCA weights → FSI → Hotspots → Validation.

``analyze_grid`` is the local, pure part and works on any co-registered
factor stack.  ``run_analysis`` wires it to Earth Engine (or a directory of
GeoTIFFs), then exports rasters, the map and the report.
"""

import os

import numpy as np

import config
from fsi.preprocessing import normalize_factors, validate_range
from fsi.pca import get_pca_weights, WeightVector
from fsi.flood_model import composite_fsi, classify_risk
from fsi.hotspot import detect_hotspots
from fsi.raster_io import (
    pixel_size_m, write_geotiff, load_factor_stack, load_sar_pair, reproject_to_grid,
)
from fsi.validation import (
    flood_mask_from_ratio, speckle_filter,
    compute_overlap, mean_fsi_by_flood_class, check_known_flood_cities,
)

DEFAULT_PARAMS = {
    "factors_dir": None,
    "scale": config.ANALYSIS_SCALE,
    "region": config.VALIDATION_REGION,
    "sample_count": config.PCA_SAMPLE_COUNT,
    "seed": config.PCA_SEED,
    "hotspot_radius_m": config.HOTSPOT_RADIUS_M,
    "z95": config.Z_95,
    "z99": config.Z_99,
    "sar_threshold": config.SAR_RATIO_THRESHOLD,
    "aspect_peak_deg": config.ASPECT_PEAK_DEG,
    "cloud_max": config.CLOUD_COVER_MAX,
    "workers": None,
    "output_dir": config.OUTPUT_DIR,
    "skip_map": False,
}


def _stack_to_samples(vuln: dict, names: list) -> np.ndarray:
    columns = np.stack([np.asarray(vuln[n], dtype=np.float64).ravel() for n in names], axis=1)
    return columns[~np.isnan(columns).any(axis=1)]


def weights_from_raw_samples(raw: np.ndarray, aspect_peak_deg: float = None) -> WeightVector:
    """Normalise raw (N, 6) factor rows, then derive PCA weights from them."""
    names = config.FACTOR_NAMES
    raw = np.asarray(raw, dtype=np.float64)
    vuln = normalize_factors({n: raw[:, i] for i, n in enumerate(names)},
                             aspect_peak_deg=aspect_peak_deg)
    return get_pca_weights(samples=_stack_to_samples(vuln, names))


def analyze_grid(
    factors: dict,
    meta: dict,
    weights: WeightVector = None,
    flood_mask: np.ndarray = None,
    sar_pair: tuple = None,
    params: dict = None,
    progress=None,
) -> dict:
    """
    Run the local pipeline on one grid.

    ``weights`` are derived from this grid when not supplied.  A flood mask
    may be given directly or derived from a (before, after) ``sar_pair``;
    either must already sit on the factor grid (``reproject_to_grid``).
    Raises ValueError when the weights cannot be estimated.
    """
    p = {**DEFAULT_PARAMS, **(params or {})}
    progress = progress or (lambda msg: None)

    progress("Normalising factors...")
    vuln = normalize_factors(factors, aspect_peak_deg=p["aspect_peak_deg"])
    for name, arr in vuln.items():
        validate_range(arr, f"{name}_vuln")

    if weights is None:
        progress("Estimating PCA weights...")
        weights = get_pca_weights(vuln, n_samples=p["sample_count"], seed=p["seed"])

    progress("Compositing FSI...")
    fsi = composite_fsi(vuln, weights, n_workers=p["workers"])
    validate_range(fsi, "FSI")
    risk_class = classify_risk(fsi)

    progress("Detecting hotspots...")
    hotspots = detect_hotspots(
        fsi,
        radius_m=p["hotspot_radius_m"],
        pixel_size_m=pixel_size_m(meta),
        z95=p["z95"],
        z99=p["z99"],
    )

    if flood_mask is None and sar_pair is not None and sar_pair[0] is not None:
        before, after = sar_pair
        flood_mask = flood_mask_from_ratio(before, after, p["sar_threshold"])

    overlap, flood_means = None, None
    if flood_mask is not None:
        progress("Validating against SAR flood extent...")
        flood_mask = np.asarray(flood_mask).astype(bool)
        overlap = compute_overlap(hotspots["hotspot_99"], flood_mask)
        flood_means = mean_fsi_by_flood_class(fsi, flood_mask)
    else:
        print("[PIPE] No flood extent available – SAR validation skipped")

    layers = {"fsi": fsi, **hotspots}
    cities = check_known_flood_cities(layers, meta)

    return {
        "meta": meta,
        "factors": factors,
        "vulnerability": vuln,
        "weights": weights,
        "fsi": fsi,
        "risk_class": risk_class,
        "hotspots": hotspots,
        "flood_mask": flood_mask,
        "overlap": overlap,
        "flood_class_means": flood_means,
        "cities": cities,
    }


def _load_local(p: dict, progress) -> tuple:
    progress(f"Loading factor rasters from {p['factors_dir']}...")
    factors, meta = load_factor_stack(p["factors_dir"])
    before, after, sar_meta = load_sar_pair(p["factors_dir"])
    if before is not None:
        sar_size = pixel_size_m(sar_meta)
        before = reproject_to_grid(speckle_filter(before, pixel_size_m=sar_size), sar_meta, meta)
        after = reproject_to_grid(speckle_filter(after, pixel_size_m=sar_size), sar_meta, meta)
    return factors, meta, None, (before, after)


def _load_remote(p: dict, progress) -> tuple:
    from fsi import gee_data

    progress("Connecting to Google Earth Engine...")
    gee_data.initialize_ee()

    progress("Building study area & factor images...")
    aoi = gee_data.get_study_area()
    gee_data.compute_area_km2(aoi)
    factor_image = gee_data.build_factor_image(aoi)

    progress("Sampling random points for PCA...")
    raw = gee_data.sample_factor_points(
        factor_image, aoi, n_points=p["sample_count"], seed=p["seed"],
    )
    weights = weights_from_raw_samples(raw, p["aspect_peak_deg"])

    progress("Downloading factor grid for the analysis region...")
    region = gee_data.get_validation_region(p["region"])
    raw_grid, meta = gee_data.ee_image_to_numpy(factor_image.clip(region), region, p["scale"])
    factors = {name: raw_grid[i] for i, name in enumerate(config.FACTOR_NAMES)}

    progress("Downloading Sentinel-1 before/after backscatter...")
    sar_grid, sar_meta = gee_data.ee_image_to_numpy(gee_data.fetch_sar_pair(region), region, p["scale"])
    sar_pair = (reproject_to_grid(sar_grid[0], sar_meta, meta),
                reproject_to_grid(sar_grid[1], sar_meta, meta))
    return factors, meta, weights, sar_pair


def export_layers(result: dict, output_dir: str) -> dict:
    """Write FSI, z-score, hotspot class and flood mask GeoTIFFs."""
    meta = result["meta"]
    paths = {
        "fsi": write_geotiff(result["fsi"], meta, os.path.join(output_dir, config.FSI_GEOTIFF)),
        "z_score": write_geotiff(result["hotspots"]["z_score"], meta,
                                 os.path.join(output_dir, config.ZSCORE_GEOTIFF)),
        "hotspot_class": write_geotiff(result["hotspots"]["hotspot_class"], meta,
                                       os.path.join(output_dir, config.HOTSPOT_GEOTIFF)),
    }
    if result.get("flood_mask") is not None:
        paths["flood_mask"] = write_geotiff(result["flood_mask"], meta,
                                            os.path.join(output_dir, config.FLOOD_GEOTIFF))
    return paths


def run_analysis(params: dict = None, progress=None) -> dict:
    """
    Full run: acquire factors, analyse, export GeoTIFFs, map and report.
    Weight-estimation failure aborts everything downstream (ValueError).
    """
    from fsi.decision_support import (
        compute_fsi_statistics, compute_hotspot_statistics, generate_report,
    )
    from fsi.visualization import create_fsi_map

    p = {**DEFAULT_PARAMS, **(params or {})}
    progress = progress or (lambda msg: print(f"[PIPE] {msg}"))

    if p["factors_dir"]:
        factors, meta, weights, sar_pair = _load_local(p, progress)
    else:
        factors, meta, weights, sar_pair = _load_remote(p, progress)

    result = analyze_grid(factors, meta, weights=weights, sar_pair=sar_pair,
                          params=p, progress=progress)

    progress("Exporting rasters...")
    paths = export_layers(result, p["output_dir"])

    if not p["skip_map"]:
        progress("Rendering map...")
        paths["map"] = create_fsi_map(result, os.path.join(p["output_dir"], config.FSI_MAP_HTML))

    progress("Writing report...")
    fsi_stats = compute_fsi_statistics(result["fsi"], meta)
    hotspot_stats = compute_hotspot_statistics(result["hotspots"], meta)
    report = generate_report(
        fsi_stats=fsi_stats,
        hotspot_stats=hotspot_stats,
        weights=result["weights"].as_dict(),
        overlap=result["overlap"],
        flood_class_means=result["flood_class_means"],
        cities=result["cities"],
        params={k: v for k, v in p.items() if k not in ("workers",)},
        output_dir=p["output_dir"],
    )
    paths["report"] = report["path"]

    result["fsi_statistics"] = fsi_stats
    result["hotspot_statistics"] = hotspot_stats
    result["report"] = report
    result["paths"] = paths
    return result
