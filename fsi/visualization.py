"""
Visualization Module – Interactive Folium/Leaflet map of factors, FSI and hotspots.
"""

import os
import io
import base64

import folium
import numpy as np
from branca.element import Element
from folium.plugins import MiniMap
from matplotlib.colors import LinearSegmentedColormap, to_rgba
from PIL import Image

import config

LEGEND_POSITIONS = {
    "bottomleft": "bottom: 30px; left: 10px;",
    "bottomright": "bottom: 30px; right: 10px;",
    "topright": "top: 80px; right: 10px;",
    "topleft": "top: 80px; left: 60px;",
}


def create_fsi_map(
    result: dict,
    output_path: str = None,
    show_factors: bool = True,
) -> str:
    """
    Build a Folium map with:
      1. Raw factor and vulnerability layers (hidden by default)
      2. Flood Susceptibility Index
      3. Gi* z-scores and hotspot / coldspot classes
      4. SAR flood extent and hotspot ∩ flood overlap
      5. Validation rectangle and known flood cities
      6. Legends
    Saves to output/ and returns the file path.
    """
    meta = result["meta"]
    west, south, east, north = meta["bounds"]
    m = folium.Map(
        location=[(south + north) / 2, (west + east) / 2],
        zoom_start=8,
        tiles="CartoDB positron",
    )
    bounds = [[south, west], [north, east]]

    # ── 1. Factors & vulnerability ──────────────────────────────────────────
    if show_factors:
        for name, arr in result.get("factors", {}).items():
            _add_raster(m, _colorize(arr, config.VIS[name]), bounds, name.title(), show=False)
        for name, arr in result.get("vulnerability", {}).items():
            _add_raster(m, _colorize(arr, config.VIS["vulnerability"]), bounds,
                        f"{name.title()} Vulnerability", show=False)

    # ── 2. FSI ──────────────────────────────────────────────────────────────
    _add_raster(m, _colorize(result["fsi"], config.VIS["fsi"]), bounds,
                "Flood Susceptibility Index", show=True)

    # ── 3. Hotspots ─────────────────────────────────────────────────────────
    hot = result["hotspots"]
    _add_raster(m, _colorize(hot["z_score"], config.VIS["gi_star"]), bounds,
                "Gi* Z-scores", show=False)
    _add_raster(m, _mask_rgba(hot["hotspot_99"], config.HOTSPOT_99_COLOR), bounds,
                "Hotspots (99% confidence)", show=True)
    _add_raster(m, _mask_rgba(hot["hotspot_95"], config.HOTSPOT_95_COLOR), bounds,
                "Hotspots (95% confidence)", show=True)
    _add_raster(m, _mask_rgba(hot["coldspot_95"], config.COLDSPOT_95_COLOR), bounds,
                "Coldspots (95% confidence)", show=False)

    # ── 4. Flood extent & overlap ───────────────────────────────────────────
    flood = result.get("flood_mask")
    if flood is not None:
        _add_raster(m, _mask_rgba(flood, config.FLOOD_COLOR), bounds,
                    "SAR Flood Extent (Ratio Method)", show=True)
        _add_raster(m, _mask_rgba(hot["hotspot_99"] & flood, config.OVERLAP_COLOR), bounds,
                    "Overlap: Hotspot ∩ Flood", show=True)

    # ── 5. Validation region & cities ───────────────────────────────────────
    folium.Rectangle(bounds, color="red", fill=False, weight=2,
                     tooltip="Validation Region").add_to(m)
    cities = folium.FeatureGroup(name="Known Flood Cities")
    for city in result.get("cities") or config.FLOOD_CITIES:
        folium.CircleMarker(
            [city["lat"], city["lon"]],
            radius=6,
            color="black",
            weight=1,
            fill=True,
            fill_color=config.FLOOD_CITY_COLOR,
            fill_opacity=1.0,
            tooltip=_city_tooltip(city),
        ).add_to(cities)
    cities.add_to(m)

    # ── 6. Legends ──────────────────────────────────────────────────────────
    if show_factors:
        add_legend(m, "Legend", [
            _ramp_section("Elevation (m)", "elevation", ["0 (Low)", "1250 (Mid)", "2500 (High)"]),
            _ramp_section("Slope (°)", "slope", ["0 (Flat)", "30 (Mid)", "60 (Steep)"]),
            ("Aspect (Direction)", [("#FF0000", "North"), ("#FFFF00", "East"),
                                    ("#00FF00", "South"), ("#0000FF", "West")]),
        ], position="bottomleft")
        add_legend(m, "Legend (Dynamic Layers)", [
            _ramp_section("NDVI (Vegetation)", "ndvi", ["0.0 (Bare)", "0.4 (Sparse)", "0.8 (Dense)"]),
            _ramp_section("Max 24h Rainfall (mm)", "rainfall", ["50 (Low)", "225 (Mid)", "400 (High)"]),
            _ramp_section("Distance to River (m)", "distance", ["0 (Close)", "5,000 (Mid)", "10,000 (Far)"]),
        ], position="bottomright")
    add_legend(m, "Flood Susceptibility Index", [
        _ramp_section(None, "fsi", ["0.0 (Low Susceptibility)", "0.5 (Medium)", "1.0 (High Susceptibility)"]),
        ("Hotspots (Gi*)", [
            (config.HOTSPOT_99_COLOR, "99% – critical priority"),
            (config.HOTSPOT_95_COLOR, "95% – high priority"),
            (config.COLDSPOT_95_COLOR, "Coldspot 95%"),
            (config.OVERLAP_COLOR, "Hotspot ∩ SAR flood"),
            (config.FLOOD_CITY_COLOR, "Known flood city"),
        ]),
    ], position="topright")

    # ── Extras ──────────────────────────────────────────────────────────────
    MiniMap(toggle_display=True).add_to(m)
    folium.LayerControl().add_to(m)
    m.fit_bounds(bounds)

    if output_path is None:
        output_path = os.path.join(config.OUTPUT_DIR, config.FSI_MAP_HTML)
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    m.save(output_path)
    print(f"[VIS] Map saved → {output_path}")
    return output_path


def add_legend(
    m: folium.Map,
    title: str,
    sections: list[tuple],
    position: str = "bottomleft",
) -> str:
    """
    Attach a fixed HTML legend panel.

    ``sections`` is a list of ``(subtitle, [(colour, label), ...])``; a
    ``None`` subtitle renders the entries directly under the title.
    Returns the generated HTML.
    """
    if position not in LEGEND_POSITIONS:
        raise ValueError(f"Unknown legend position '{position}'")

    rows = []
    for subtitle, entries in sections:
        if subtitle:
            rows.append(f'<div style="font-weight:bold; margin-top:4px;">{subtitle}</div>')
        for colour, label in entries:
            rows.append(
                '<div style="display:flex; align-items:center; margin:0 0 4px 0;">'
                f'<span style="background:{colour}; width:16px; height:16px; '
                'border:1px solid grey; display:inline-block;"></span>'
                f'<span style="margin-left:6px;">{label}</span></div>'
            )

    html = (
        f'<div style="position: fixed; {LEGEND_POSITIONS[position]} z-index:9999; '
        'background-color: white; border:1px solid black; padding: 8px 15px; font-size:12px;">'
        f'<div style="font-weight:bold; font-size:16px; margin:0 0 4px 0;">{title}</div>'
        + "".join(rows)
        + "</div>"
    )
    m.get_root().html.add_child(Element(html))
    return html


# ── Private helpers ──────────────────────────────────────────────────────────

def _ramp_section(subtitle, vis_key: str, labels: list) -> tuple:
    """Legend entries at the low / middle / high stops of a palette."""
    palette = config.VIS[vis_key]["palette"]
    stops = [palette[0], palette[len(palette) // 2], palette[-1]]
    return subtitle, list(zip(stops, labels))


def _colorize(array: np.ndarray, vis: dict) -> np.ndarray:
    """Map an array onto an RGBA palette ramp; NaN becomes transparent."""
    arr = np.asarray(array, dtype=np.float64)
    vmin, vmax = vis["min"], vis["max"]
    norm = np.clip((arr - vmin) / (vmax - vmin), 0.0, 1.0)
    cmap = LinearSegmentedColormap.from_list("ramp", vis["palette"], N=256)
    rgba = cmap(np.nan_to_num(norm, nan=0.0))
    rgba[..., 3] = np.where(np.isnan(arr), 0.0, 0.7)
    return rgba


def _mask_rgba(mask: np.ndarray, colour: str) -> np.ndarray:
    """Solid colour where the mask is set, transparent elsewhere."""
    mask = np.asarray(mask).astype(bool)
    rgba = np.zeros(mask.shape + (4,), dtype=np.float64)
    rgba[mask] = to_rgba(colour)
    return rgba


def _add_raster(m: folium.Map, rgba: np.ndarray, bounds: list, name: str, show: bool = True):
    """Render an RGBA array as a base64 PNG ImageOverlay."""
    img = Image.fromarray((rgba * 255).astype(np.uint8))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode()

    folium.raster_layers.ImageOverlay(
        image=f"data:image/png;base64,{encoded}",
        bounds=bounds,
        name=name,
        show=show,
    ).add_to(m)


def _city_tooltip(city: dict) -> str:
    if city.get("fsi") is None:
        return city["name"]
    z = city.get("z_score")
    z_text = "n/a" if z is None else f"{z:.2f}"
    return f"{city['name']} – FSI {city['fsi']:.2f}, z {z_text}, {city['hotspot_class']}"
