# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/warehouse/routes/auth.py
"""
Authentication API routes

Every stock movement records who made it, so each person gets their own
account. Tokens are returned once on login and sent back as
Authorization: Bearer <token>.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Create an account and log it in.

    Request body:
    {
        "email": "jane@example.com",   // required
        "password": "s3cretpass",      // required, 8+ chars, letter and digit
        "first_name": "Jane",          // optional
        "last_name": "Doe"             // optional
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.create_user(
            email=email,
            password=password,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        current_app.logger.info("Registered user id=%s", user.id)
        return jsonify({**_session_payload(user, session, token), "message": "Registration successful"}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e), "field": "password"}), 400
    except ConflictError as e:
        return jsonify({"error": str(e), "field": "email"}), 409
    except ValueError as e:
        return jsonify({"error": str(e), "field": "email"}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed login for %s from %s", auth_service.normalize_email(email), request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({**_session_payload(user, session, token), "message": "Login successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authorization header required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")
        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/user")
@require_auth
def current_user_route():
    """Return the user behind the bearer token."""
    return jsonify(g.session_context.user.to_dict()), 200
