#!/usr/bin/env python3
"""
main.py – CLI entry point for the Western Ghats Flood Susceptibility pipeline.

Usage:
    python main.py                                  # Earth Engine, Kerala validation grid
    python main.py --scale 500 --hotspot-radius 3000
    python main.py --factors-dir data/kerala        # local GeoTIFFs instead of GEE

The pipeline:
    1. Authenticate & initialise GEE, build the Western Ghats AOI
    2. Build the six factor images (DEM, slope, aspect, NDVI, rainfall, river distance)
    3. Sample 5000 fixed-seed points → vulnerability → PCA weights
    4. Download the analysis grid → FSI (weighted sum)
    5. Gi* hotspot z-scores + confidence classes
    6. Sentinel-1 ratio flood extent → overlap validation
    7. Interactive Folium map
    8. JSON report
"""

import argparse
import sys
import os

# Ensure project root is on the path so `import config` works
sys.path.insert(0, os.path.dirname(__file__))

import config
from fsi.pipeline import run_analysis


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Western Ghats Flood Susceptibility Index, Hotspot & SAR Validation",
    )
    p.add_argument("--factors-dir", default=None,
                   help="Directory of <factor>.tif rasters (skips Earth Engine)")
    p.add_argument("--scale", type=float, default=config.ANALYSIS_SCALE, help="Analysis grid scale (m)")
    p.add_argument("--region", type=float, nargs=4, default=config.VALIDATION_REGION,
                   metavar=("WEST", "SOUTH", "EAST", "NORTH"), help="Analysis rectangle")
    p.add_argument("--samples", type=int, default=config.PCA_SAMPLE_COUNT, help="PCA sample count")
    p.add_argument("--seed", type=int, default=config.PCA_SEED, help="PCA sampling seed")
    p.add_argument("--hotspot-radius", type=float, default=config.HOTSPOT_RADIUS_M,
                   help="Hotspot neighbourhood radius (m)")
    p.add_argument("--z95", type=float, default=config.Z_95, help="95%% z-score threshold")
    p.add_argument("--z99", type=float, default=config.Z_99, help="99%% z-score threshold")
    p.add_argument("--sar-threshold", type=float, default=config.SAR_RATIO_THRESHOLD,
                   help="Before/after backscatter ratio threshold")
    p.add_argument("--aspect-peak", type=float, default=config.ASPECT_PEAK_DEG,
                   help="Bearing of peak aspect vulnerability (deg)")
    p.add_argument("--workers", type=int, default=None, help="Worker processes for compositing")
    p.add_argument("--output-dir", default=config.OUTPUT_DIR, help="Output directory")
    p.add_argument("--skip-map", action="store_true", help="Skip the HTML map")
    return p.parse_args(argv)


def params_from_args(args) -> dict:
    return {
        "factors_dir": args.factors_dir,
        "scale": args.scale,
        "region": list(args.region),
        "sample_count": args.samples,
        "seed": args.seed,
        "hotspot_radius_m": args.hotspot_radius,
        "z95": args.z95,
        "z99": args.z99,
        "sar_threshold": args.sar_threshold,
        "aspect_peak_deg": args.aspect_peak,
        "workers": args.workers,
        "output_dir": args.output_dir,
        "skip_map": args.skip_map,
    }


def main(argv=None):
    args = parse_args(argv)
    params = params_from_args(args)

    print("=" * 60)
    print("  WESTERN GHATS FLOOD SUSCEPTIBILITY  (PCA 6-Factor)")
    print("=" * 60)
    print(f"  Source: {args.factors_dir or 'Google Earth Engine'}")
    print(f"  Region: {params['region']}  @ {args.scale} m")
    print(f"  PCA:    {args.samples} samples, seed {args.seed}")
    print(f"  Gi*:    radius {args.hotspot_radius} m, z {args.z95}/{args.z99}")
    print("=" * 60)

    try:
        result = run_analysis(params, progress=lambda msg: print(f"\n▶ {msg}"))
    except ValueError as e:
        print(f"\n[PIPE] ❌ Analysis aborted: {e}")
        return 1

    paths = result["paths"]
    print("\n" + "=" * 60)
    print("  ✅  Pipeline complete!")
    print(f"  📄  FSI GeoTIFF     → {paths['fsi']}")
    if "map" in paths:
        print(f"  🗺️   Interactive map → {paths['map']}")
    print(f"  📊  Report          → {paths['report']}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
