"""
Raster I/O – Local GeoTIFF source and sink for the in-memory grids.

A directory holding ``elevation.tif``, ``slope.tif``, ``aspect.tif``,
``ndvi.tif``, ``rainfall.tif`` and ``distance.tif`` (plus optional
``sar_before.tif`` / ``sar_after.tif``) can stand in for Earth Engine.
"""

import os
import math

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.transform import from_bounds
from rasterio.warp import reproject, Resampling

import config

METRES_PER_DEGREE = 111_320


def make_meta(transform, width: int, height: int, crs: str = config.CRS,
              scale: float = None) -> dict:
    """Grid metadata dict shared by every layer on one grid."""
    west, north = transform * (0, 0)
    east, south = transform * (width, height)
    meta = {
        "transform": transform,
        "width": int(width),
        "height": int(height),
        "bounds": (west, south, east, north),
        "crs": str(crs),
    }
    meta["scale"] = float(scale) if scale else pixel_size_m(meta)
    return meta


def meta_from_bounds(bounds: tuple, width: int, height: int,
                     crs: str = config.CRS, scale: float = None) -> dict:
    """Grid metadata from (west, south, east, north) bounds."""
    west, south, east, north = bounds
    transform = from_bounds(west, south, east, north, width, height)
    return make_meta(transform, width, height, crs, scale)


def pixel_size_m(meta: dict) -> float:
    """Approximate pixel width in metres (degrees are converted at mid-latitude)."""
    if meta.get("scale"):
        return float(meta["scale"])
    transform = meta["transform"]
    crs = str(meta.get("crs", config.CRS))
    if crs.upper() == "EPSG:4326":
        west, south, east, north = meta["bounds"]
        mid_lat = (south + north) / 2
        return abs(transform.a) * METRES_PER_DEGREE * math.cos(math.radians(mid_lat))
    return abs(transform.a)


def read_geotiff(path: str, band: int = None) -> tuple[np.ndarray, dict]:
    """
    Read a GeoTIFF as float64 with nodata → NaN.
    Returns (array, meta); array is 2D when ``band`` is given or the file
    has a single band, otherwise (bands, rows, cols).
    """
    with rasterio.open(path) as src:
        if band is not None:
            data = src.read(band, masked=True)
        else:
            data = src.read(masked=True)
            if data.shape[0] == 1:
                data = data[0]
        arr = np.ma.filled(data.astype(np.float64), np.nan)
        meta = make_meta(src.transform, src.width, src.height, src.crs or config.CRS)
    return arr, meta


def write_geotiff(array: np.ndarray, meta: dict, path: str, nodata: float = None) -> str:
    """Write a 2D array to a single-band GeoTIFF on the given grid."""
    arr = np.asarray(array)
    if arr.dtype == bool:
        arr = arr.astype(np.uint8)

    if np.issubdtype(arr.dtype, np.floating):
        arr = arr.astype(np.float32)
        nodata = np.nan if nodata is None else nodata

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    profile = {
        "driver": "GTiff",
        "height": arr.shape[0],
        "width": arr.shape[1],
        "count": 1,
        "dtype": arr.dtype.name,
        "crs": meta.get("crs", config.CRS),
        "transform": meta["transform"],
        "compress": "deflate",
    }
    if nodata is not None:
        profile["nodata"] = nodata

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(arr, 1)
    print(f"[EXPORT] GeoTIFF saved → {path}")
    return path


def load_factor_stack(directory: str, names: list = None) -> tuple[dict, dict]:
    """
    Load ``<factor>.tif`` for every factor from ``directory``.
    All rasters must share one grid; returns (factors, meta).
    """
    names = names or config.FACTOR_NAMES
    factors, meta = {}, None
    for name in names:
        path = os.path.join(directory, f"{name}.tif")
        if not os.path.exists(path):
            raise ValueError(f"Missing factor raster: {path}")
        arr, this_meta = read_geotiff(path, band=1)
        if meta is None:
            meta = this_meta
        elif arr.shape != (meta["height"], meta["width"]):
            raise ValueError(
                f"{name}.tif is {arr.shape}, expected {(meta['height'], meta['width'])}"
            )
        factors[name] = arr
    print(f"[IO] Loaded {len(factors)} factor rasters from {directory} "
          f"– grid {meta['width']}×{meta['height']}")
    return factors, meta


def reproject_to_grid(array: np.ndarray, src_meta: dict, dst_meta: dict,
                      resampling=Resampling.nearest) -> np.ndarray:
    """
    Warp a 2D array from its own grid onto ``dst_meta`` (transform, CRS, shape).
    Destination pixels outside the source coverage become NaN.
    """
    source = np.asarray(array, dtype=np.float64)
    aligned = np.full((dst_meta["height"], dst_meta["width"]), np.nan, dtype=np.float64)
    reproject(
        source=source,
        destination=aligned,
        src_transform=src_meta["transform"],
        src_crs=CRS.from_user_input(src_meta.get("crs", config.CRS)),
        src_nodata=np.nan,
        dst_transform=dst_meta["transform"],
        dst_crs=CRS.from_user_input(dst_meta.get("crs", config.CRS)),
        dst_nodata=np.nan,
        resampling=resampling,
    )
    print(f"[IO] Reprojected {source.shape} → {aligned.shape} ({resampling.name}), "
          f"{int(np.isnan(aligned).sum())} pixels without coverage")
    return aligned


def load_sar_pair(directory: str) -> tuple:
    """
    Return (before, after, meta) backscatter arrays on the SAR rasters' own
    grid, or (None, None, None) if absent.
    """
    before_path = os.path.join(directory, "sar_before.tif")
    after_path = os.path.join(directory, "sar_after.tif")
    if not (os.path.exists(before_path) and os.path.exists(after_path)):
        print(f"[IO] No SAR pair in {directory}")
        return None, None, None
    before, meta = read_geotiff(before_path, band=1)
    after, after_meta = read_geotiff(after_path, band=1)
    if after.shape != before.shape or after_meta["transform"] != meta["transform"]:
        raise ValueError("sar_before.tif and sar_after.tif are not on the same grid")
    return before, after, meta
