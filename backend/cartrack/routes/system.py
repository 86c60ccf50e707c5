# backend/cartrack/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Cartridge, Location, Operation

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial query plus table counts.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "cartridges": db.session.query(Cartridge).count(),
            "locations": db.session.query(Location).count(),
            "operations": db.session.query(Operation).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    code = 200 if database["status"] == "healthy" else 503
    return {"status": database["status"], "database": database}, code
