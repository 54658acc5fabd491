"""
Configuration constants for the Western Ghats Flood Susceptibility pipeline.

Model: FSI(x) = Σ w_i · Vuln_i(x)   over six factors
  Vuln_i  = factor-specific normalisation into [0, 1]
  w_i     = |PC1 loadings| of the vulnerability covariance, normalised to sum 1

Hotspots: focal z-score of FSI in a 5 km circle (Gi*-style), validated against
a Sentinel-1 before/after backscatter ratio flood map (Kerala, Aug 2018).
"""

import os

# ── Google Earth Engine ──────────────────────────────────────────────────────
GEE_PROJECT_ID = os.getenv("GEE_PROJECT_ID", "western-ghats-fsi")

# ── Study Area (RESOLVE Ecoregions 2017) ────────────────────────────────────
ECOREGIONS_ASSET = "RESOLVE/ECOREGIONS/2017"
ECOREGION_NAMES = ["North Western Ghats", "South Western Ghats"]
AREA_MAX_ERROR_M = 100

# Validation / analysis rectangle over Kerala: [west, south, east, north]
VALIDATION_REGION = [75.5, 8.5, 77.5, 12.5]

# ── Data Sources (GEE asset IDs) ────────────────────────────────────────────
DEM_ASSET = "USGS/SRTMGL1_003"
S2_ASSET = "COPERNICUS/S2_SR_HARMONIZED"
CHIRPS_ASSET = "UCSB-CHG/CHIRPS/DAILY"
RIVERS_ASSET = "WWF/HydroSHEDS/v1/FreeFlowingRivers"
S1_ASSET = "COPERNICUS/S1_GRD"

# ── Date Windows (ISO 8601) ─────────────────────────────────────────────────
NDVI_START = "2023-06-01"
NDVI_END = "2025-09-30"
RAIN_START = "2015-01-01"
RAIN_END = "2025-10-31"
SAR_BEFORE = ("2018-05-01", "2018-05-31")
SAR_AFTER = ("2018-08-18", "2018-08-25")

# ── Optical Imagery ─────────────────────────────────────────────────────────
CLOUD_COVER_MAX = 20               # CLOUDY_PIXEL_PERCENTAGE filter (%)
S2_CLEAR_SCL_CLASSES = [4, 5, 6, 7]  # vegetation, bare, water, unclassified

# ── River Distance ──────────────────────────────────────────────────────────
RIVER_SEARCH_RADIUS_M = 50000
RIVER_MAX_ERROR_M = 10

# ── Processing ──────────────────────────────────────────────────────────────
ANALYSIS_SCALE = 300     # metres – grid used for FSI, hotspots and validation
CRS = "EPSG:4326"
MAX_PIXELS = 1e10

# ── Factors & Vulnerability Domains ─────────────────────────────────────────
# Order is fixed: it is the column order of the PCA sample matrix.
FACTOR_NAMES = ["elevation", "slope", "aspect", "ndvi", "rainfall", "distance"]

# inverse  → 1 - clamp((x - min) / (max - min))   (low value = high risk)
# direct   →     clamp((x - min) / (max - min))   (high value = high risk)
# directional → (cos(aspect - peak) + 1) / 2
VULNERABILITY_DOMAINS = {
    "elevation": {"relation": "inverse", "min": 0.0, "max": 2500.0},
    "slope":     {"relation": "inverse", "min": 0.0, "max": 60.0},
    "aspect":    {"relation": "directional", "peak": 270.0},
    "ndvi":      {"relation": "inverse", "min": 0.0, "max": 1.0},
    "rainfall":  {"relation": "direct",  "min": 50.0, "max": 400.0},
    "distance":  {"relation": "inverse", "min": 0.0, "max": 10000.0},
}
ASPECT_PEAK_DEG = 270.0  # West

# ── PCA Weighting ───────────────────────────────────────────────────────────
PCA_SAMPLE_COUNT = 5000
PCA_SEED = 42
PCA_SAMPLE_SCALE = 1000  # metres – sampling scale over the full AOI

# ── Hotspot Analysis (Gi*) ──────────────────────────────────────────────────
HOTSPOT_RADIUS_M = 5000
Z_95 = 1.96   # two-tailed 95 %
Z_99 = 2.58   # two-tailed 99 %
MIN_STDDEV = 1e-6      # below this a window is treated as uniform

# ── SAR Flood Extent ────────────────────────────────────────────────────────
SAR_POLARISATION = "VV"
SAR_INSTRUMENT_MODE = "IW"
SAR_RATIO_THRESHOLD = 1.5
SPECKLE_RADIUS_M = 50

# Known historically flooded cities (2018 / 2019 monsoon)
FLOOD_CITIES = [
    {"name": "Kozhikode",  "lat": 11.87, "lon": 75.37},
    {"name": "Kochi",      "lat": 9.93,  "lon": 76.27},
    {"name": "Malappuram", "lat": 11.25, "lon": 75.52},
    {"name": "Thrissur",   "lat": 10.53, "lon": 76.33},
    {"name": "Mangalore",  "lat": 12.87, "lon": 74.85},
    {"name": "Kolhapur",   "lat": 16.71, "lon": 74.01},
]

# ── Risk Classification Thresholds (fixed) ──────────────────────────────────
RISK_THRESHOLDS = {
    "low_max":    0.3,    # 0.00 – 0.30  → Low
    "medium_max": 0.6,    # 0.30 – 0.60  → Medium
                          # 0.60 – 1.00  → High
}

# ── Parallelism ─────────────────────────────────────────────────────────────
MAX_WORKERS = 8
MIN_PARALLEL_PIXELS = 250_000   # below this, composite in-process

# ── Visualization Palettes ──────────────────────────────────────────────────
VIS = {
    "elevation": {"min": 0, "max": 2500,
                  "palette": ["#2b83ba", "#abdda4", "#ffffbf", "#fdae61", "#d7191c"]},
    "slope":     {"min": 0, "max": 60,
                  "palette": ["#ffffd4", "#fed98e", "#fe9929", "#d95f0e", "#993404"]},
    "aspect":    {"min": 0, "max": 360,
                  "palette": ["#FF0000", "#FFFF00", "#00FF00", "#0000FF", "#FF0000"]},
    "ndvi":      {"min": 0, "max": 0.8,
                  "palette": ["#a6611a", "#dfc27d", "#f5f5f5", "#80cdc1", "#018571"]},
    "rainfall":  {"min": 50, "max": 400,
                  "palette": ["#eff3ff", "#bdd7e7", "#6baed6", "#3182bd", "#08519c"]},
    "distance":  {"min": 0, "max": 10000,
                  "palette": ["#d7191c", "#fdae61", "#ffffbf", "#abdda4", "#2b83ba"]},
    "vulnerability": {"min": 0, "max": 1, "palette": ["#000000", "#FFFFFF"]},
    "fsi":       {"min": 0, "max": 1,
                  "palette": ["#2c7bb6", "#abd9e9", "#ffffbf", "#fdae61", "#d7191c"]},
    "gi_star":   {"min": -3, "max": 3,
                  "palette": ["#0000FF", "#8888FF", "#FFFFFF", "#FFAA00", "#FF0000"]},
}
HOTSPOT_99_COLOR = "#8B0000"
HOTSPOT_95_COLOR = "#FF0000"
COLDSPOT_95_COLOR = "#0000FF"
FLOOD_COLOR = "#0000FF"
OVERLAP_COLOR = "#00FF00"
FLOOD_CITY_COLOR = "#FFFF00"

# ── Output Paths ────────────────────────────────────────────────────────────
OUTPUT_DIR = "output"
FSI_GEOTIFF = "fsi.tif"
ZSCORE_GEOTIFF = "gi_star_z.tif"
HOTSPOT_GEOTIFF = "hotspot_class.tif"
FLOOD_GEOTIFF = "sar_flood_extent.tif"
FSI_MAP_HTML = "fsi_map.html"
REPORT_JSON = "fsi_report.json"
