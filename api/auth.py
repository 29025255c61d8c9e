"""
Authentication blueprint (mounted at /api/v1/jwt):
- POST /token    -> access token + refresh cookie
- POST /refresh  -> new access token, refresh cookie rotated
- GET  /verify   -> validate a bearer token
- POST /logout   -> revoke refresh token, clear cookie

Access tokens are HS256 JWTs returned in the body. Refresh tokens never
appear in a body: they travel only in an HTTP-only cookie.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, make_response

from models.schemas.user import TokenRequestSchema, UserOutSchema, UserDetailOutSchema
from utils.decorators import get_auth_service, bearer_token_from_request
from utils.exceptions import NotAuthenticated

bp = Blueprint("auth", __name__)

token_request_schema = TokenRequestSchema()
user_out_schema = UserOutSchema()
user_detail_out_schema = UserDetailOutSchema()


def _client_metadata():
    return {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


def _refresh_cookie_value(service) -> str | None:
    return request.cookies.get(service.cookies.name) or None


@bp.post("/token")
def issue_token():
    """
    Login: returns an access token and sets the refresh token cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (access token in body, refresh token in Set-Cookie)
      400:
        description: Missing username or password
      403:
        description: Invalid credentials
    """
    payload = token_request_schema.load(request.get_json(silent=True) or {})
    service = get_auth_service()
    issued = service.issue_session(payload["username"], payload["password"], **_client_metadata())

    response = make_response(jsonify(
        {
            "access_token": issued.access_token,
            "token_type": "Bearer",
            "expires_in": issued.expires_in,
            "user": user_out_schema.dump(issued.user),
            "message": "Authentication successful",
        }
    ), 200)
    if issued.refresh_cookie is not None:
        issued.refresh_cookie.set_on(response)
    return response


@bp.post("/refresh")
def refresh_access_token():
    """
    Exchange the refresh token cookie for a new access token (the cookie is rotated)
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (new access token, new refresh cookie)
      401:
        description: Missing, invalid, expired or reused refresh token
    """
    service = get_auth_service()
    refreshed = service.refresh_session(_refresh_cookie_value(service), **_client_metadata())

    response = make_response(jsonify(
        {
            "access_token": refreshed.access_token,
            "token_type": "Bearer",
            "expires_in": refreshed.expires_in,
            "message": "Token refreshed successfully",
        }
    ), 200)
    if refreshed.refresh_cookie is not None:
        refreshed.refresh_cookie.set_on(response)
    return response


@bp.get("/verify")
def verify_token():
    """
    Verify an access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Token is valid
      401:
        description: Not authenticated
    """
    token = bearer_token_from_request()
    if not token:
        raise NotAuthenticated()
    user = get_auth_service().verify_bearer(token)
    return jsonify(
        {
            "valid": True,
            "user": user_detail_out_schema.dump(user),
            "message": "Token is valid",
        }
    ), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token and clears its cookie
    ---
    tags:
      - Auth
    responses:
      200:
        description: Always succeeds
    """
    service = get_auth_service()
    clear_cookie = service.logout(_refresh_cookie_value(service))
    response = make_response(jsonify({"message": "Logout successful"}), 200)
    return clear_cookie.set_on(response)
