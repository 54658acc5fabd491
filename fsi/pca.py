"""
PCA Module – Empirical factor weights from the first principal component.

    1. Covariance matrix (6×6) of the sampled vulnerability columns
    2. Eigen-decomposition, keep the eigenvector of the largest eigenvalue
    3. w_i = |loading_i| / Σ |loading_j|

The eigenvector's sign is arbitrary; taking absolute loadings is the only
sign convention applied.
"""

from dataclasses import dataclass, field

import numpy as np

import config


@dataclass
class WeightVector:
    """PCA-derived factor weights (non-negative, summing to 1)."""

    names: list
    values: np.ndarray
    eigenvalue: float = 0.0
    explained_variance: float = 0.0
    sample_count: int = 0
    loadings: np.ndarray = field(default=None, repr=False)

    def as_dict(self) -> dict:
        return {name: float(w) for name, w in zip(self.names, self.values)}

    def __getitem__(self, name: str) -> float:
        return float(self.values[self.names.index(name)])


def sample_vulnerability(
    vuln: dict,
    n_samples: int = config.PCA_SAMPLE_COUNT,
    seed: int = config.PCA_SEED,
    names: list = None,
) -> np.ndarray:
    """
    Draw up to ``n_samples`` pixels (without replacement) where every factor
    is valid.  Returns an (N, n_factors) array; same seed → same rows.
    """
    names = names or config.FACTOR_NAMES
    columns = np.stack([np.asarray(vuln[n], dtype=np.float64).ravel() for n in names], axis=1)
    valid_idx = np.flatnonzero(~np.isnan(columns).any(axis=1))

    if valid_idx.size < len(names):
        raise ValueError(
            f"Only {valid_idx.size} fully valid pixels; need at least {len(names)} for PCA"
        )

    rng = np.random.default_rng(seed)
    count = min(n_samples, valid_idx.size)
    chosen = np.sort(rng.choice(valid_idx, size=count, replace=False))
    print(f"[PCA] Sampled {count} of {valid_idx.size} valid pixels (seed={seed})")
    return columns[chosen]


def covariance_matrix(samples: np.ndarray) -> np.ndarray:
    """Sample covariance of the factor columns."""
    samples = np.asarray(samples, dtype=np.float64)
    return np.atleast_2d(np.cov(samples, rowvar=False))


def compute_pca_weights(samples: np.ndarray, names: list = None) -> WeightVector:
    """
    Compute PCA weights from an (N, k) sample matrix.

    Raises ValueError when the samples are too few or non-finite, or when
    the eigen-decomposition does not produce usable loadings.
    """
    names = names or config.FACTOR_NAMES
    samples = np.asarray(samples, dtype=np.float64)

    if samples.ndim != 2 or samples.shape[1] != len(names):
        raise ValueError(f"Expected an (N, {len(names)}) sample matrix, got {samples.shape}")
    n = samples.shape[0]
    if n < len(names):
        raise ValueError(f"PCA needs at least {len(names)} samples, got {n}")
    if not np.isfinite(samples).all():
        raise ValueError("PCA samples contain NaN or infinite values")

    cov = covariance_matrix(samples)

    try:
        eigenvalues, eigenvectors = np.linalg.eigh(cov)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"Eigen-decomposition failed: {e}") from e

    trace = float(np.trace(cov))
    pc1 = int(np.argmax(eigenvalues))
    if eigenvalues[pc1] <= 1e-12 * max(1.0, trace):
        raise ValueError("Samples have no variance; first principal component is undefined")

    loadings = eigenvectors[:, pc1]
    abs_loadings = np.abs(loadings)
    total = abs_loadings.sum()
    if not np.isfinite(total) or total <= 0:
        raise ValueError("First principal component has no usable loadings")

    weights = abs_loadings / total
    explained = float(eigenvalues[pc1] / trace) if trace > 0 else 0.0

    return WeightVector(
        names=list(names),
        values=weights,
        eigenvalue=float(eigenvalues[pc1]),
        explained_variance=explained,
        sample_count=n,
        loadings=loadings,
    )


def get_pca_weights(
    vuln: dict = None,
    samples: np.ndarray = None,
    n_samples: int = config.PCA_SAMPLE_COUNT,
    seed: int = config.PCA_SEED,
    names: list = None,
) -> WeightVector:
    """
    Derive and report the weight vector, either from a vulnerability stack
    (sampled here) or from a pre-drawn sample matrix.
    """
    names = names or config.FACTOR_NAMES
    if samples is None:
        if vuln is None:
            raise ValueError("Either a vulnerability stack or a sample matrix is required")
        samples = sample_vulnerability(vuln, n_samples, seed, names)

    weights = compute_pca_weights(samples, names)

    print(f"[PCA] Covariance ({len(names)}×{len(names)}) from {weights.sample_count} samples")
    for name, w in weights.as_dict().items():
        print(f"       {name:12s} = {w:.4f}")
    print(f"       λ_1       = {weights.eigenvalue:.6f}")
    print(f"       PC1 share = {weights.explained_variance:.2%}")
    return weights
