"""
GEE Data Module – Authentication, study area, factor images, SAR and downloads.

Everything here builds Earth Engine requests; values only leave the server
through ``getInfo`` / download URLs, after which the pipeline is local.
"""

import io
import urllib.request

import ee
import numpy as np
import rasterio

import config
from fsi.raster_io import make_meta


def initialize_ee(project_id: str = config.GEE_PROJECT_ID) -> None:
    """Authenticate (if needed) and initialise Earth Engine."""
    try:
        ee.Initialize(project=project_id)
    except Exception:
        ee.Authenticate()
        ee.Initialize(project=project_id)
    print(f"[GEE] Initialised with project: {project_id}")


def evaluate(obj, label: str, default=None):
    """
    Blocking ``getInfo`` that reports a remote error and returns ``default``
    instead of raising.  Use only for values the pipeline can live without.
    """
    try:
        return obj.getInfo()
    except ee.EEException as e:
        print(f"[GEE] Error evaluating {label}: {e}")
        return default


# ── Study area ───────────────────────────────────────────────────────────────

def get_study_area(names: list = None) -> ee.Geometry:
    """Dissolved Western Ghats boundary from RESOLVE Ecoregions 2017."""
    names = names or config.ECOREGION_NAMES
    eco_filter = ee.Filter.Or(*[ee.Filter.stringContains("ECO_NAME", n) for n in names])
    boundary = ee.FeatureCollection(config.ECOREGIONS_ASSET).filter(eco_filter)
    aoi = boundary.union().geometry()
    print(f"[GEE] Study area: {' + '.join(names)}")
    return aoi


def compute_area_km2(aoi: ee.Geometry):
    """Study-area size in km², or None if the server call fails."""
    area = ee.Number(aoi.area(config.AREA_MAX_ERROR_M)).divide(1e6)
    km2 = evaluate(area, "study area")
    if km2 is not None:
        print(f"[GEE] Study area: {km2:,.0f} km²")
    return km2


def get_validation_region(bbox: list = None) -> ee.Geometry:
    """Rectangle used for FSI, hotspot and SAR validation (Kerala)."""
    return ee.Geometry.Rectangle(bbox or config.VALIDATION_REGION)


# ── Terrain ──────────────────────────────────────────────────────────────────

def fetch_dem(aoi: ee.Geometry) -> ee.Image:
    """SRTM DEM clipped to the AOI."""
    dem = ee.Image(config.DEM_ASSET).clip(aoi)
    print("[GEE] DEM fetched")
    return dem


def compute_slope(dem: ee.Image) -> ee.Image:
    """Derive slope (degrees) from the DEM."""
    return ee.Terrain.slope(dem)


def compute_aspect(dem: ee.Image) -> ee.Image:
    """Derive aspect (degrees clockwise from North) from the DEM."""
    return ee.Terrain.aspect(dem)


# ── Vegetation ───────────────────────────────────────────────────────────────

def mask_s2_clouds(image: ee.Image) -> ee.Image:
    """Keep only clear scene-classification classes."""
    scl = image.select("SCL")
    clear = scl.eq(config.S2_CLEAR_SCL_CLASSES[0])
    for cls in config.S2_CLEAR_SCL_CLASSES[1:]:
        clear = clear.Or(scl.eq(cls))
    return image.updateMask(clear)


def add_ndvi(image: ee.Image) -> ee.Image:
    return image.addBands(image.normalizedDifference(["B8", "B4"]).rename("NDVI"))


def fetch_ndvi(
    aoi: ee.Geometry,
    start: str = config.NDVI_START,
    end: str = config.NDVI_END,
    cloud_max: float = config.CLOUD_COVER_MAX,
) -> ee.Image:
    """Median cloud-masked Sentinel-2 NDVI composite."""
    ndvi = (
        ee.ImageCollection(config.S2_ASSET)
        .filterBounds(aoi)
        .filterDate(start, end)
        .filter(ee.Filter.lt("CLOUDY_PIXEL_PERCENTAGE", cloud_max))
        .map(mask_s2_clouds)
        .map(add_ndvi)
        .select("NDVI")
        .median()
        .clip(aoi)
    )
    print(f"[GEE] NDVI composite {start} → {end} (cloud < {cloud_max}%)")
    return ndvi


# ── Hydro-meteorology ───────────────────────────────────────────────────────

def fetch_max_rainfall(
    aoi: ee.Geometry,
    start: str = config.RAIN_START,
    end: str = config.RAIN_END,
) -> ee.Image:
    """Maximum daily (24 h) CHIRPS precipitation over the window."""
    rain = ee.ImageCollection(config.CHIRPS_ASSET).filterDate(start, end).max().clip(aoi)
    print(f"[GEE] Max 24 h rainfall {start} → {end}")
    return rain


def fetch_river_distance(aoi: ee.Geometry) -> ee.Image:
    """Distance (m) to the nearest HydroSHEDS free-flowing river."""
    rivers = ee.FeatureCollection(config.RIVERS_ASSET).filterBounds(aoi)
    distance = rivers.distance(
        searchRadius=config.RIVER_SEARCH_RADIUS_M,
        maxError=config.RIVER_MAX_ERROR_M,
    ).clip(aoi)
    print("[GEE] River distance computed")
    return distance


def build_factor_image(aoi: ee.Geometry) -> ee.Image:
    """Six raw factor bands, in FACTOR_NAMES order."""
    dem = fetch_dem(aoi)
    image = ee.Image.cat([
        dem,
        compute_slope(dem),
        compute_aspect(dem),
        fetch_ndvi(aoi),
        fetch_max_rainfall(aoi),
        fetch_river_distance(aoi),
    ]).rename(config.FACTOR_NAMES)
    print(f"[GEE] Factor image assembled: {config.FACTOR_NAMES}")
    return image


def sample_factor_points(
    factor_image: ee.Image,
    region: ee.Geometry,
    n_points: int = config.PCA_SAMPLE_COUNT,
    seed: int = config.PCA_SEED,
    scale: int = config.PCA_SAMPLE_SCALE,
) -> np.ndarray:
    """
    Raw factor values at fixed-seed random points over ``region``.
    Points landing on masked pixels are dropped by the server.
    """
    points = ee.FeatureCollection.randomPoints(region=region, points=n_points, seed=seed)
    sample = factor_image.sampleRegions(collection=points, scale=scale, geometries=False)
    features = sample.getInfo()["features"]

    rows = []
    for feat in features:
        props = feat["properties"]
        if all(props.get(n) is not None for n in config.FACTOR_NAMES):
            rows.append([float(props[n]) for n in config.FACTOR_NAMES])
    print(f"[GEE] Sampled {len(rows)}/{n_points} random points (seed={seed}, scale={scale} m)")
    return np.array(rows, dtype=np.float64).reshape(-1, len(config.FACTOR_NAMES))


# ── SAR ──────────────────────────────────────────────────────────────────────

def fetch_sar_pair(
    region: ee.Geometry,
    before: tuple = config.SAR_BEFORE,
    after: tuple = config.SAR_AFTER,
    speckle_radius_m: float = config.SPECKLE_RADIUS_M,
) -> ee.Image:
    """Speckle-filtered median VV backscatter before and after the event."""
    s1 = (
        ee.ImageCollection(config.S1_ASSET)
        .filterBounds(region)
        .filter(ee.Filter.listContains("transmitterReceiverPolarisation", config.SAR_POLARISATION))
        .filter(ee.Filter.eq("instrumentMode", config.SAR_INSTRUMENT_MODE))
        .select(config.SAR_POLARISATION)
    )
    pre = s1.filterDate(*before).median().focal_median(speckle_radius_m, "circle", "meters")
    post = s1.filterDate(*after).median().focal_median(speckle_radius_m, "circle", "meters")
    print(f"[GEE] Sentinel-1 {config.SAR_POLARISATION} before {before} / after {after}")
    return ee.Image.cat([pre, post]).rename(["before", "after"])


# ── Numpy export helper ─────────────────────────────────────────────────────

def ee_image_to_numpy(
    image: ee.Image,
    region: ee.Geometry,
    scale: int = config.ANALYSIS_SCALE,
) -> tuple[np.ndarray, dict]:
    """
    Download an EE image as a (bands, rows, cols) float array plus grid meta.
    Uses GeoTIFF download; masked pixels become NaN.
    """
    url = image.getDownloadURL({
        "scale": scale,
        "crs": config.CRS,
        "region": region,
        "format": "GEO_TIFF",
    })
    with urllib.request.urlopen(url) as response:
        data = response.read()

    with rasterio.open(io.BytesIO(data)) as src:
        arr = np.ma.filled(src.read(masked=True).astype(np.float64), np.nan)
        meta = make_meta(src.transform, src.width, src.height, config.CRS, scale)

    print(f"[GEE] Downloaded {arr.shape[0]} band(s) as numpy – grid {meta['width']}×{meta['height']}")
    return arr, meta
