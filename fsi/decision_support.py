"""
Decision Support Module – FSI / hotspot statistics and situation-report generation.
"""

import os
import json
import math

import numpy as np

import config
from fsi.raster_io import METRES_PER_DEGREE


def pixel_area_km2(meta: dict) -> float:
    """Area of one pixel in km² (degrees converted at mid-latitude for EPSG:4326)."""
    transform = meta["transform"]
    if str(meta.get("crs", config.CRS)).upper() == "EPSG:4326":
        west, south, east, north = meta["bounds"]
        mid_lat = (south + north) / 2
        pixel_w_m = abs(transform.a) * METRES_PER_DEGREE * math.cos(math.radians(mid_lat))
        pixel_h_m = abs(transform.e) * METRES_PER_DEGREE
    else:
        pixel_w_m, pixel_h_m = abs(transform.a), abs(transform.e)
    return pixel_w_m * pixel_h_m / 1e6


def compute_fsi_statistics(fsi: np.ndarray, meta: dict, thresholds: dict = None) -> dict:
    """
    Area percentages per susceptibility class.
    Returns dict with pixel counts, percentages and areas.
    """
    t = thresholds or config.RISK_THRESHOLDS
    fsi = np.asarray(fsi, dtype=np.float64)
    valid = fsi[~np.isnan(fsi)]
    total = len(valid)
    if total == 0:
        return {"error": "No valid pixels"}

    area = pixel_area_km2(meta)
    low = np.sum(valid <= t["low_max"])
    medium = np.sum((valid > t["low_max"]) & (valid <= t["medium_max"]))
    high = np.sum(valid > t["medium_max"])

    def _class_stats(count):
        return {
            "pixels": int(count),
            "pct": round(count / total * 100, 1),
            "area_km2": round(count * area, 2),
        }

    stats = {
        "total_pixels": int(total),
        "pixel_area_km2": round(area, 6),
        "total_area_km2": round(total * area, 2),
        "low_susceptibility": _class_stats(low),
        "medium_susceptibility": _class_stats(medium),
        "high_susceptibility": _class_stats(high),
        "mean_fsi": round(float(valid.mean()), 4),
        "min_fsi": round(float(valid.min()), 4),
        "max_fsi": round(float(valid.max()), 4),
    }
    print(f"[DSS] FSI stats – Low: {stats['low_susceptibility']['pct']}%, "
          f"Medium: {stats['medium_susceptibility']['pct']}%, "
          f"High: {stats['high_susceptibility']['pct']}%")
    return stats


def compute_hotspot_statistics(hotspots: dict, meta: dict) -> dict:
    """Pixel counts and areas of each Gi* confidence class."""
    area = pixel_area_km2(meta)
    z = hotspots["z_score"]
    counts = {
        "hotspot_99": int(np.sum(hotspots["hotspot_99"])),
        "hotspot_95": int(np.sum(hotspots["hotspot_95"])),
        "coldspot_95": int(np.sum(hotspots["coldspot_95"])),
        "undefined_z": int(np.isnan(z).sum()),
    }
    stats = {k: {"pixels": v, "area_km2": round(v * area, 2)} for k, v in counts.items()}
    print(f"[DSS] Hotspot stats – 99%: {counts['hotspot_99']}, "
          f"95%: {counts['hotspot_95']}, coldspots: {counts['coldspot_95']}")
    return stats


def generate_report(
    fsi_stats: dict,
    hotspot_stats: dict = None,
    weights: dict = None,
    overlap: dict = None,
    flood_class_means: dict = None,
    cities: list[dict] = None,
    params: dict = None,
    output_dir: str = None,
) -> dict:
    """
    Generate a structured analytical report (JSON) with a plain-text summary.
    """
    report = {
        "title": "Western Ghats Flood Susceptibility Report",
        "parameters": params or {},
        "pca_weights": weights or {},
        "fsi_statistics": fsi_stats,
        "hotspot_statistics": hotspot_stats or {},
        "sar_validation": overlap or {},
        "mean_fsi_by_flood_class": {str(k): v for k, v in (flood_class_means or {}).items()},
        "known_flood_cities": cities or [],
    }

    def _fmt(key):
        return (fsi_stats.get(key, {}).get("pct", 0),
                fsi_stats.get(key, {}).get("area_km2", 0))

    lines = [
        "═══ FLOOD SUSCEPTIBILITY REPORT (PCA 6-Factor Model) ═══",
        "",
        f"Analysis area: {fsi_stats.get('total_area_km2', 0)} km²",
        f"Mean flood susceptibility index: {fsi_stats.get('mean_fsi', 'N/A')}",
        "",
        f"• Low:    {_fmt('low_susceptibility')[0]}%  ({_fmt('low_susceptibility')[1]} km²)",
        f"• Medium: {_fmt('medium_susceptibility')[0]}%  ({_fmt('medium_susceptibility')[1]} km²)",
        f"• High:   {_fmt('high_susceptibility')[0]}%  ({_fmt('high_susceptibility')[1]} km²)",
    ]

    if weights:
        lines += ["", "PCA-derived weights:"]
        lines += [f"  {name:10s} {w:.4f}" for name, w in weights.items()]

    if hotspot_stats:
        lines += [
            "",
            f"Hotspots 99%: {hotspot_stats['hotspot_99']['area_km2']} km²",
            f"Hotspots 95%: {hotspot_stats['hotspot_95']['area_km2']} km²",
            f"Coldspots 95%: {hotspot_stats['coldspot_95']['area_km2']} km²",
        ]

    if overlap:
        if overlap.get("insufficient_data"):
            lines.append("\n⚠  SAR validation: no flooded pixels – insufficient data")
        else:
            lines += [
                "",
                f"SAR flooded pixels: {overlap['flood_pixels']}",
                f"Flooded area within 99% hotspots: {overlap['overlap_pct']}%",
            ]

    if cities:
        hit = [c["name"] for c in cities if c.get("hotspot_class") in ("hotspot-95", "hotspot-99")]
        lines.append(f"\nKnown flood cities on hotspots: {', '.join(hit) if hit else 'none'}")

    report["summary_text"] = "\n".join(lines)

    output_dir = output_dir or config.OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)
    out_path = os.path.join(output_dir, config.REPORT_JSON)
    with open(out_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    print(f"[DSS] Report saved → {out_path}")
    report["path"] = out_path

    print()
    print(report["summary_text"])
    return report
