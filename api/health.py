import time

from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                status: { type: string, example: ok }
                uptime: { type: number, example: 12.5 }
                timestamp: { type: integer, example: 1760781600000 }
    """
    started = current_app.extensions["auth_gateway"]["started_at"]
    return {
        "data": {
            "status": "ok",
            "uptime": time.monotonic() - started,
            "timestamp": int(time.time() * 1000),
        }
    }, 200
