"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/forgot-password
- GET  /auth/resend-verification
- POST /auth/verify-email
- POST /auth/reset-password
- GET  /auth/refresh-token
- GET  /auth/logout
- POST /auth/verify-access-token

Credentials and session tokens live at the identity provider; this
blueprint only moves them between the client and the AuthFacade. The
refresh token travels in an HTTP-only cookie scoped to the refresh endpoint.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app, g

from models.schemas.auth import (
    AccessTokenSchema,
    ForgotPasswordSchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
    VerifyEmailSchema,
)
from services.auth import AuthFacade
from services.identity_provider import SessionTokenPair
from utils.decorators import bearer_token, bearer_token_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
forgot_password_schema = ForgotPasswordSchema()
verify_email_schema = VerifyEmailSchema()
reset_password_schema = ResetPasswordSchema()
access_token_schema = AccessTokenSchema()


def _facade() -> AuthFacade:
    return current_app.extensions["auth_gateway"]["facade"]


def _set_refresh_cookie(response, refresh_token: str):
    cfg = current_app.config
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        refresh_token,
        max_age=cfg["REFRESH_COOKIE_MAX_AGE"],
        domain=cfg["REFRESH_COOKIE_DOMAIN"],
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=True,
        httponly=True,
        samesite="None",
    )
    return response


def _clear_refresh_cookie(response):
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        domain=cfg["REFRESH_COOKIE_DOMAIN"],
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=True,
        httponly=True,
        samesite="None",
    )
    return response


def _session_response(pair: SessionTokenPair, status: int, extra: dict | None = None):
    """Access token in the body, refresh token in the cookie only."""
    data = pair.without_refresh_token().to_dict()
    data.update(extra or {})
    response = jsonify({"data": data})
    response.status_code = status
    if pair.refresh_token:
        _set_refresh_cookie(response, pair.refresh_token)
    return response


@bp.post("/register")
def register():
    """
    Register a new account and send the email verification link.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password]
          properties:
            email: { type: string }
            password:
              type: string
              description: At least 8 characters with uppercase, lowercase, number and special character
    responses:
      201:
        description: Created (returns idToken, sets refresh_token cookie)
      400:
        description: Invalid input
      409:
        description: Email already in use
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    pair = _facade().register(data["email"], data["password"])
    return _session_response(pair, 201)


@bp.post("/login")
def login():
    """
    Login: return idToken, refresh token by cookie or (on request) in the body
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
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
             returnRefreshToken: { type: boolean, default: false }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: Invalid input
      401:
        description: Invalid credentials
      403:
        description: Account disabled
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    pair = _facade().login(data["email"], data["password"], want_refresh_token=True)
    if data["returnRefreshToken"]:
        return jsonify({"data": pair.to_dict()}), 200
    return _session_response(pair, 200)


@bp.post("/forgot-password")
def forgot_password():
    """
    Request a password reset link. The answer does not reveal whether the
    email is registered.
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
           required: [email]
           properties:
             email: { type: string }
    responses:
      200:
        description: Generic message
      400:
        description: Invalid email format
    """
    data = forgot_password_schema.load(request.get_json(silent=True) or {})
    message = _facade().forgot_password(data["email"])
    return jsonify({"data": {"message": message}}), 200


@bp.get("/resend-verification")
@bearer_token_required(400)
def resend_verification():
    """
    Send a new email verification link to the signed-in account.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Generic confirmation; sent only when the account exists and is unverified
      400:
        description: Missing or invalid access token, or no email in it
    """
    message = _facade().resend_verification(g.access_token)
    return jsonify({"data": {"message": message}}), 200


@bp.post("/verify-email")
def verify_email():
    """
    Consume an email verification token and start a fresh session.
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
           required: [token]
           properties:
             token: { type: string }
    responses:
      200:
        description: Email verified (returns idToken, sets refresh_token cookie)
      400:
        description: Invalid or expired token
    """
    data = verify_email_schema.load(request.get_json(silent=True) or {})
    pair = _facade().verify_email(data["token"])
    return _session_response(pair, 200, {"verified": True, "message": "Email verified successfully"})


@bp.post("/reset-password")
def reset_password():
    """
    Consume a password reset token and set a new password.
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
           required: [token, password]
           properties:
             token: { type: string }
             password: { type: string }
    responses:
      200:
        description: Password updated
      400:
        description: Invalid or expired token, or weak password
    """
    data = reset_password_schema.load(request.get_json(silent=True) or {})
    _facade().reset_password(data["token"], data["password"])
    return jsonify({"data": {"success": True, "message": "Password has been reset successfully"}}), 200


@bp.get("/refresh-token")
def refresh_token():
    """
    Exchange the refresh_token cookie for a new idToken (cookie is rotated)
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (returns idToken)
      401:
        description: Invalid or expired refresh token
      403:
        description: Account disabled
    """
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    pair = _facade().refresh(token)
    return _session_response(pair, 200)


@bp.get("/logout")
def logout():
    """
    Logout: revokes every refresh token of the caller and clears the cookie.
    Always succeeds.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
    """
    _facade().logout(bearer_token())
    response = jsonify({"data": {"success": True, "message": "Logged out successfully"}})
    return _clear_refresh_cookie(response), 200


@bp.post("/verify-access-token")
def verify_access_token():
    """
    Check an access token with the identity provider.
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
           required: [accessToken]
           properties:
             accessToken: { type: string }
    responses:
      200:
        description: "{valid: bool}, cacheable"
      400:
        description: Missing token
      500:
        description: Verification failed unexpectedly
    """
    data = access_token_schema.load(request.get_json(silent=True) or {})
    valid = _facade().verify_access_token(data["accessToken"])
    response = jsonify({"data": {"valid": valid}})
    response.cache_control.private = True
    response.cache_control.max_age = current_app.config["ACCESS_TOKEN_CACHE_SECONDS"]
    return response, 200
