#!/usr/bin/env python3
"""
app.py – Flask web server for running FSI analyses as background jobs.

Endpoints:
    GET  /                      → defaults & endpoint list
    POST /api/analyze           → starts the pipeline, returns { job_id }
    GET  /api/status/<job_id>   → poll progress / summary
    GET  /api/map/<job_id>      → interactive Folium map (HTML)
    GET  /api/report/<job_id>   → JSON situation report
"""

import os
import sys
import uuid
import traceback
import threading

import numpy as np
from flask import Flask, request, jsonify, send_file

# Ensure project root on path
sys.path.insert(0, os.path.dirname(__file__))

import config
from fsi.pca import WeightVector

app = Flask(__name__)


def _to_native(obj):
    """Recursively turn numpy values and weight vectors into JSON-safe Python.
    NaN / inf become null, dict keys become strings."""
    if isinstance(obj, WeightVector):
        return obj.as_dict()
    if isinstance(obj, dict):
        return {str(k): _to_native(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, np.ndarray)):
        return [_to_native(v) for v in (obj.tolist() if isinstance(obj, np.ndarray) else obj)]
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        v = float(obj)
        return v if np.isfinite(v) else None
    return obj


# In-memory job store  { job_id: { status, progress, result, error } }
jobs = {}
jobs_lock = threading.Lock()

# Request fields accepted by /api/analyze → pipeline parameter names
ANALYZE_FIELDS = {
    "factors_dir": str,
    "scale": float,
    "sample_count": int,
    "seed": int,
    "hotspot_radius_m": float,
    "z95": float,
    "z99": float,
    "sar_threshold": float,
    "aspect_peak_deg": float,
}


# ── Routes ──────────────────────────────────────────────────────────────────


@app.route("/")
def index():
    return jsonify({
        "service": "Western Ghats Flood Susceptibility",
        "defaults": {
            "scale": config.ANALYSIS_SCALE,
            "region": config.VALIDATION_REGION,
            "sample_count": config.PCA_SAMPLE_COUNT,
            "seed": config.PCA_SEED,
            "hotspot_radius_m": config.HOTSPOT_RADIUS_M,
            "z95": config.Z_95,
            "z99": config.Z_99,
            "sar_threshold": config.SAR_RATIO_THRESHOLD,
        },
        "endpoints": ["/api/analyze", "/api/status/<job_id>",
                      "/api/map/<job_id>", "/api/report/<job_id>"],
    })


@app.route("/api/analyze", methods=["POST"])
def analyze():
    """
    Accepts JSON with any of ANALYZE_FIELDS plus ``region`` [w, s, e, n].
    Returns: { job_id } immediately, pipeline runs in background.
    """
    data = request.get_json(force=True, silent=True) or {}
    try:
        params = {k: cast(data[k]) for k, cast in ANALYZE_FIELDS.items() if k in data}
        if "region" in data:
            region = [float(v) for v in data["region"]]
            if len(region) != 4:
                raise ValueError("region must be [west, south, east, north]")
            params["region"] = region
    except (TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid parameters: {e}"}), 400

    job_id = str(uuid.uuid4())[:8]
    params["output_dir"] = os.path.join(config.OUTPUT_DIR, job_id)
    with jobs_lock:
        jobs[job_id] = {"status": "running", "progress": "Initialising...", "result": None, "error": None}

    thread = threading.Thread(
        target=_run_pipeline,
        args=(job_id, params),
        daemon=True,
    )
    thread.start()

    return jsonify({"job_id": job_id})


@app.route("/api/status/<job_id>")
def job_status(job_id):
    """Poll job progress."""
    with jobs_lock:
        job = jobs.get(job_id)
    if not job:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(job)


@app.route("/api/map/<job_id>")
def job_map(job_id):
    """Serve the Folium map for a finished job."""
    return _serve_artifact(job_id, "map", "text/html")


@app.route("/api/report/<job_id>")
def job_report(job_id):
    """Serve the JSON report for a finished job."""
    return _serve_artifact(job_id, "report", "application/json")


def _serve_artifact(job_id, key, mimetype):
    with jobs_lock:
        job = jobs.get(job_id)
    if not job:
        return jsonify({"error": "Job not found"}), 404
    path = ((job.get("result") or {}).get("paths") or {}).get(key)
    if path and os.path.exists(path):
        return send_file(os.path.abspath(path), mimetype=mimetype)
    return jsonify({"error": f"{key.title()} not ready"}), 404


# ── Pipeline runner ─────────────────────────────────────────────────────────


def _update_progress(job_id, msg):
    with jobs_lock:
        if job_id in jobs:
            jobs[job_id]["progress"] = msg


def _run_pipeline(job_id, params):
    """Run the full pipeline and store a JSON-safe summary."""
    try:
        from fsi.pipeline import run_analysis

        result = run_analysis(params, progress=lambda msg: _update_progress(job_id, msg))

        summary = {
            "weights": result["weights"],
            "fsi_statistics": result["fsi_statistics"],
            "hotspot_statistics": result["hotspot_statistics"],
            "sar_validation": result["overlap"],
            "mean_fsi_by_flood_class": result["flood_class_means"],
            "known_flood_cities": result["cities"],
            "paths": result["paths"],
            "params": params,
        }

        with jobs_lock:
            jobs[job_id]["status"] = "done"
            jobs[job_id]["progress"] = "Complete"
            jobs[job_id]["result"] = _to_native(summary)

    except Exception as e:
        traceback.print_exc()
        with jobs_lock:
            jobs[job_id]["status"] = "error"
            jobs[job_id]["error"] = str(e)
            jobs[job_id]["progress"] = f"Error: {e}"


if __name__ == "__main__":
    print("🌊 Flood Susceptibility server starting...")
    print("   POST http://localhost:5050/api/analyze to start a job")
    app.run(debug=False, port=5050, threaded=True)
