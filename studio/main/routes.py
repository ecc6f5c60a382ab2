"""
studio/main/routes.py
─────────────────────
Health check for load balancers and monitoring.
"""
import shutil
from datetime import datetime

from flask import Blueprint, current_app
from sqlalchemy import text

from studio import db

main = Blueprint('main', __name__)


@main.route("/health")
def health():
    status = "ok"
    failures = []

    # 1. DB Check
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        status = "error"
        failures.append(f"DB: {e}")
        current_app.logger.error(f"Health check failed (DB): {e}")

    # 2. Disk Check
    free_gb = None
    percent_free = None
    try:
        total, used, free = shutil.disk_usage("/")
        free_gb = free // (2**30)
        percent_free = (free / total) * 100
        if percent_free < 10:
            msg = f"Low Disk Space: {free_gb}GB free ({percent_free:.1f}%)"
            failures.append(msg)
            current_app.logger.warning(msg)
            if status == "ok":
                status = "warning"
    except OSError as e:
        failures.append(f"Disk Check Error: {e}")
        if status == "ok":
            status = "warning"

    response = {
        "status": status,
        "timestamp": datetime.utcnow().isoformat(),
        "details": {
            "db": "error" if status == "error" else "ok",
            "disk_free_gb": free_gb,
            "disk_free_percent": round(percent_free, 1) if percent_free is not None else None,
        }
    }
    if failures:
        response["failures"] = failures

    return response, 200 if status != "error" else 500
