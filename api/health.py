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
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            secret_configured:
              type: boolean
    """
    service = current_app.extensions["session_auth"]
    return {
        "status": "ok",
        "version": "1.0.0",
        "secret_configured": bool(service.settings.secret),
    }, 200
