"""
Session management for the authenticated user:
- GET    /sessions              -> recent refresh token grants, newest first
- DELETE /sessions/<session_id> -> revoke one of them
- DELETE /sessions              -> revoke all of them (log out everywhere)
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort

from models.schemas.session import SessionOutSchema
from utils.decorators import bearer_required, get_auth_service
from utils.exceptions import AuthError

MAX_LIMIT = 100

bp = Blueprint("sessions", __name__)


def parse_limit() -> int:
    try:
        limit = int(request.args.get("limit", str(MAX_LIMIT)))
    except ValueError:
        abort(400, description="limit must be an integer")
    return max(1, min(limit, MAX_LIMIT))


@bp.get("/sessions")
@bearer_required()
def list_sessions():
    """
    List the caller's sessions
    ---
    tags:
      - Sessions
    security:
      - Bearer: []
    parameters:
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
      401: { description: Not authenticated }
    """
    service = get_auth_service()
    rows = service.list_sessions(g.current_user.id, parse_limit())
    schema = SessionOutSchema(many=True, now=service.now())
    return jsonify({"data": schema.dump(rows)}), 200


@bp.delete("/sessions/<int:session_id>")
@bearer_required()
def revoke_session(session_id: int):
    """
    Revoke one of the caller's sessions
    ---
    tags:
      - Sessions
    security:
      - Bearer: []
    parameters:
      - in: path
        name: session_id
        type: integer
        required: true
    responses:
      200: { description: Revoked }
      404: { description: No active session with that id }
    """
    if not get_auth_service().revoke_session(g.current_user.id, session_id):
        raise AuthError("Session not found or already revoked", code="session_not_found", status=404)
    return jsonify({"revoked": True}), 200


@bp.delete("/sessions")
@bearer_required()
def revoke_all_sessions():
    """
    Revoke every session of the caller
    ---
    tags:
      - Sessions
    security:
      - Bearer: []
    responses:
      200: { description: Number of sessions revoked }
    """
    count = get_auth_service().revoke_all_sessions(g.current_user.id)
    return jsonify({"revoked": count}), 200
