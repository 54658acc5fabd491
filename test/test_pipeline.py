import os

import numpy as np
import pytest

import config
from fsi import gee_data
from fsi.pca import WeightVector
from fsi.raster_io import write_geotiff, meta_from_bounds
from fsi.pipeline import analyze_grid, weights_from_raw_samples, run_analysis


def _flood_band(shape=(30, 30)):
    mask = np.zeros(shape, dtype=bool)
    mask[:, :8] = True
    return mask


def test_analyze_grid_produces_all_layers(factor_stack, grid_meta):
    result = analyze_grid(factor_stack, grid_meta, flood_mask=_flood_band(),
                          params={"hotspot_radius_m": 1500})

    assert isinstance(result["weights"], WeightVector)
    assert result["weights"].values.sum() == pytest.approx(1.0)
    fsi = result["fsi"]
    assert fsi.shape == (30, 30)
    assert np.nanmin(fsi) >= 0.0 and np.nanmax(fsi) <= 1.0
    assert set(result["hotspots"]) >= {"z_score", "hotspot_class", "coldspot_95"}
    assert result["overlap"]["flood_pixels"] == 240
    assert set(result["flood_class_means"]) == {0, 1}
    assert len(result["cities"]) == len(config.FLOOD_CITIES)


def test_weights_are_reproducible(factor_stack, grid_meta):
    a = analyze_grid(factor_stack, grid_meta)["weights"]
    b = analyze_grid(factor_stack, grid_meta)["weights"]
    np.testing.assert_array_equal(a.values, b.values)


def test_supplied_weights_are_used(factor_stack, grid_meta):
    weights = {name: 1 / 6 for name in config.FACTOR_NAMES}
    result = analyze_grid(factor_stack, grid_meta, weights=weights)
    expected = np.mean(np.stack(list(result["vulnerability"].values())), axis=0)
    np.testing.assert_allclose(result["fsi"], expected)


def test_sar_pair_becomes_flood_mask(factor_stack, grid_meta):
    before = np.full((30, 30), 2.0)
    after = np.full((30, 30), 2.0)
    after[:5, :] = 1.0
    result = analyze_grid(factor_stack, grid_meta, sar_pair=(before, after))
    assert result["flood_mask"].sum() == 150
    assert result["overlap"]["flood_pixels"] == 150


def test_no_flood_extent_skips_validation(factor_stack, grid_meta):
    result = analyze_grid(factor_stack, grid_meta)
    assert result["overlap"] is None
    assert result["flood_mask"] is None


def test_degenerate_stack_aborts(grid_meta):
    factors = {name: np.full((30, 30), np.nan) for name in config.FACTOR_NAMES}
    with pytest.raises(ValueError):
        analyze_grid(factors, grid_meta)


def test_constant_stack_aborts_weight_estimation(grid_meta):
    factors = {name: np.full((30, 30), 100.0) for name in config.FACTOR_NAMES}
    with pytest.raises(ValueError, match="no variance"):
        analyze_grid(factors, grid_meta)


def test_flood_mask_on_another_grid_is_rejected(factor_stack, grid_meta):
    with pytest.raises(ValueError, match="co-registered"):
        analyze_grid(factor_stack, grid_meta, flood_mask=np.ones((60, 60), dtype=bool))


def test_weights_from_raw_samples(factor_stack):
    raw = np.column_stack([factor_stack[n].ravel() for n in config.FACTOR_NAMES])
    weights = weights_from_raw_samples(raw)
    assert weights.sample_count == 900
    assert weights.values.sum() == pytest.approx(1.0)


def test_run_analysis_from_local_rasters(tmp_path, factor_stack, grid_meta):
    data_dir = tmp_path / "data"
    for name, arr in factor_stack.items():
        write_geotiff(arr, grid_meta, str(data_dir / f"{name}.tif"))
    before = np.full((30, 30), -8.0)
    after = np.full((30, 30), -8.0)
    after[10:20, 10:20] = -16.0  # dB: before / after = 0.5
    after[:4, :] = -4.0          # before / after = 2.0 → flood
    write_geotiff(before, grid_meta, str(data_dir / "sar_before.tif"))
    write_geotiff(after, grid_meta, str(data_dir / "sar_after.tif"))

    out_dir = tmp_path / "out"
    result = run_analysis({"factors_dir": str(data_dir), "output_dir": str(out_dir)})

    paths = result["paths"]
    for key in ("fsi", "z_score", "hotspot_class", "flood_mask", "map", "report"):
        assert os.path.exists(paths[key]), key
    assert result["overlap"]["flood_pixels"] == 120
    assert result["report"]["fsi_statistics"]["total_pixels"] == 900


def test_run_analysis_skip_map(tmp_path, factor_stack, grid_meta):
    for name, arr in factor_stack.items():
        write_geotiff(arr, grid_meta, str(tmp_path / f"{name}.tif"))
    result = run_analysis({"factors_dir": str(tmp_path), "output_dir": str(tmp_path / "out"),
                           "skip_map": True})
    assert "map" not in result["paths"]
    assert "flood_mask" not in result["paths"]


def _write_factors(directory, factor_stack, grid_meta):
    for name, arr in factor_stack.items():
        write_geotiff(arr, grid_meta, str(directory / f"{name}.tif"))


def test_sar_outside_factor_grid_gives_no_flood(tmp_path, factor_stack, grid_meta):
    _write_factors(tmp_path, factor_stack, grid_meta)
    elsewhere = meta_from_bounds((80.0, 10.0, 80.081, 10.081), 30, 30)
    after = np.full((30, 30), -8.0)
    after[:5, :] = -4.0
    write_geotiff(np.full((30, 30), -8.0), elsewhere, str(tmp_path / "sar_before.tif"))
    write_geotiff(after, elsewhere, str(tmp_path / "sar_after.tif"))

    result = run_analysis({"factors_dir": str(tmp_path), "output_dir": str(tmp_path / "out"),
                           "skip_map": True})
    assert result["overlap"]["flood_pixels"] == 0
    assert result["overlap"]["insufficient_data"] is True


def test_fine_sar_is_speckle_filtered_at_its_own_resolution(tmp_path, factor_stack, grid_meta):
    _write_factors(tmp_path, factor_stack, grid_meta)
    # ~30 m SAR pixels over the ~300 m factor grid
    fine = meta_from_bounds(grid_meta["bounds"], 300, 300)
    after = np.full((300, 300), -8.0)
    after[:100, :] = -4.0          # real flood: factor rows 0-9
    after[204:206, 4:6] = -4.0     # 2×2 speckle under factor pixel (20, 0)
    write_geotiff(np.full((300, 300), -8.0), fine, str(tmp_path / "sar_before.tif"))
    write_geotiff(after, fine, str(tmp_path / "sar_after.tif"))

    result = run_analysis({"factors_dir": str(tmp_path), "output_dir": str(tmp_path / "out"),
                           "skip_map": True})
    assert result["flood_mask"].shape == (30, 30)
    assert not result["flood_mask"][20, 0]
    assert result["overlap"]["flood_pixels"] == 300


class _FakeImage:
    def __init__(self, kind):
        self.kind = kind

    def clip(self, region):
        return self


def test_run_analysis_with_earth_engine(monkeypatch, tmp_path, factor_stack, grid_meta):
    raw = np.column_stack([factor_stack[n].ravel() for n in config.FACTOR_NAMES])
    grid = np.stack([factor_stack[n] for n in config.FACTOR_NAMES])
    sar = np.stack([np.full((30, 30), 3.0), np.full((30, 30), 1.0)])
    calls = {}

    def fake_sample(image, region, n_points, seed):
        calls["sample"] = (n_points, seed)
        return raw

    def fake_download(image, region, scale):
        calls.setdefault("scales", []).append(scale)
        return (sar if image.kind == "sar" else grid), grid_meta

    monkeypatch.setattr(gee_data, "initialize_ee", lambda: None)
    monkeypatch.setattr(gee_data, "get_study_area", lambda: "aoi")
    monkeypatch.setattr(gee_data, "compute_area_km2", lambda aoi: 1.0)
    monkeypatch.setattr(gee_data, "build_factor_image", lambda aoi: _FakeImage("factors"))
    monkeypatch.setattr(gee_data, "sample_factor_points", fake_sample)
    monkeypatch.setattr(gee_data, "get_validation_region", lambda bbox: "region")
    monkeypatch.setattr(gee_data, "ee_image_to_numpy", fake_download)
    monkeypatch.setattr(gee_data, "fetch_sar_pair", lambda region: _FakeImage("sar"))

    result = run_analysis({"output_dir": str(tmp_path), "skip_map": True, "scale": 500})

    assert calls["sample"] == (config.PCA_SAMPLE_COUNT, config.PCA_SEED)
    assert calls["scales"] == [500, 500]
    assert result["weights"].sample_count == 900
    assert result["overlap"]["flood_pixels"] == 900
