"""
Flood Model – Composite Flood Susceptibility Index.

Model:
    FSI(x) = Σ_i w_i · Vuln_i(x)      i ∈ {elevation, slope, aspect, ndvi, rainfall, distance}

Every pixel is independent, so large grids are composited in row chunks
across a process pool.
"""

import os
import math
from concurrent.futures import ProcessPoolExecutor, as_completed

import numpy as np

import config
from fsi.pca import WeightVector


def _weights_dict(weights) -> dict:
    if isinstance(weights, WeightVector):
        return weights.as_dict()
    return dict(weights)


def compute_fsi(vuln: dict, weights) -> np.ndarray:
    """
    Weighted sum of the vulnerability layers.

    All inputs must be [0, 1] and weights must sum to 1; the result is
    clipped to [0, 1] to absorb floating-point drift.  NaN pixels stay NaN.
    """
    w = _weights_dict(weights)
    unweighted = [name for name in config.FACTOR_NAMES if name not in w]
    if unweighted:
        raise ValueError(f"No weight given for: {', '.join(unweighted)}")
    missing = [name for name in w if name not in vuln]
    if missing:
        raise ValueError(f"Vulnerability stack is missing: {', '.join(missing)}")

    fsi = None
    for name, weight in w.items():
        term = np.asarray(vuln[name], dtype=np.float64) * weight
        fsi = term if fsi is None else fsi + term
    return np.clip(fsi, 0.0, 1.0)


def _composite_chunk(args):
    """Worker function: composite FSI for one row band."""
    start, chunk_vuln, w = args
    return start, compute_fsi(chunk_vuln, w)


def composite_fsi(
    vuln: dict,
    weights,
    n_workers: int = None,
    min_parallel_pixels: int = config.MIN_PARALLEL_PIXELS,
) -> np.ndarray:
    """
    Compute FSI over a full grid.  Grids smaller than ``min_parallel_pixels``
    are composited in-process; larger ones are split into row bands.
    """
    if n_workers is None:
        n_workers = min(os.cpu_count() or 4, config.MAX_WORKERS)

    w = _weights_dict(weights)
    first = np.asarray(vuln[next(iter(w))])
    rows = first.shape[0] if first.ndim else 1
    total = first.size

    if total < min_parallel_pixels or n_workers <= 1 or first.ndim < 2:
        fsi = compute_fsi(vuln, w)
        print(f"[MODEL] FSI composited over {total} pixels (single-process) – weights: {w}")
        return fsi

    chunk_rows = math.ceil(rows / n_workers)
    chunks = []
    for start in range(0, rows, chunk_rows):
        stop = start + chunk_rows
        chunk_vuln = {name: np.asarray(vuln[name])[start:stop] for name in w}
        chunks.append((start, chunk_vuln, w))

    fsi = np.empty(first.shape, dtype=np.float64)
    with ProcessPoolExecutor(max_workers=n_workers) as pool:
        futures = [pool.submit(_composite_chunk, c) for c in chunks]
        for f in as_completed(futures):
            start, block = f.result()
            fsi[start:start + block.shape[0]] = block

    print(f"[MODEL] FSI composited over {total} pixels ({n_workers} workers, "
          f"{len(chunks)} chunks) – weights: {w}")
    return fsi


def classify_risk(fsi: np.ndarray, thresholds: dict = None) -> np.ndarray:
    """
    Static three-class split of FSI: 1 = Low, 2 = Medium, 3 = High.
    NaN pixels get class 0.
    """
    t = thresholds or config.RISK_THRESHOLDS
    fsi = np.asarray(fsi, dtype=np.float64)
    classified = np.zeros(fsi.shape, dtype=np.uint8)
    valid = ~np.isnan(fsi)
    classified[valid] = 1
    classified[valid & (fsi > t["low_max"])] = 2
    classified[valid & (fsi > t["medium_max"])] = 3
    print("[MODEL] Risk classified (static thresholds)")
    return classified
