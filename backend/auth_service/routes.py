"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login

JWT and password logic is delegated to `auth_service.utils`.
"""

import logging
from typing import Tuple, Dict, Any

from flask import Blueprint, request, jsonify, Response
from backend.activity_log import get_activity_log
from backend.database.db_connection import get_db
from backend.database.models import DEFAULT_ROLE, VALID_ROLES
from backend.errors import DuplicateEmailError
from backend.auth_service.utils import create_token, hash_password, verify_password
from backend.notification_service.dispatcher import get_dispatcher
from backend.notification_service.mailer import welcome_email

auth_bp = Blueprint("auth", __name__)

PASSWORD_MIN_LENGTH = 8


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    Headers are left out so credentials never reach the logs.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user in the system.

    Expects a JSON body with:
    - email (str): Unique email address.
    - password (str): Minimum 8 characters.
    - name (str)
    - role (str, optional): "organizer" or "attendee" (default).

    Returns:
        201: JSON with message, user_id, role, and a new JWT token.
        400: Missing fields, invalid input, or email already exists.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    if not all(isinstance(data.get(field) or "", str) for field in ("email", "password", "name")):
        return jsonify({"error": "email, password and name must be strings"}), 400
    email: str = (data.get("email") or "").strip()
    password: str = data.get("password") or ""
    name: str = (data.get("name") or "").strip()
    role: str = data.get("role") or DEFAULT_ROLE

    # Validate input
    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400
    if not name:
        return jsonify({"error": "Name required"}), 400
    if len(password) < PASSWORD_MIN_LENGTH:
        return jsonify({"error": f"Password must be at least {PASSWORD_MIN_LENGTH} characters"}), 400
    if role not in VALID_ROLES:
        return jsonify({"error": f"role must be one of: {', '.join(VALID_ROLES)}"}), 400

    # Hash outside the lock; Argon2 is deliberately slow
    pw_hash = hash_password(password)

    db = get_db()
    try:
        with db.lock:
            user = db.users.create_user(email, pw_hash, name, role)
            db.registrations.ensure_user(user.id)
    except DuplicateEmailError as e:
        return jsonify(e.to_dict()), 400

    get_dispatcher().dispatch([welcome_email(user.email, user.name, user.role)])
    get_activity_log().record("info", "User registered", user_id=user.id, action="REGISTER_USER")

    # Generate initial token for immediate login
    token = create_token(user.id, user.role)

    return jsonify({
        "message": "User registered successfully",
        "user_id": user.id,
        "role": user.role,
        "token": token
    }), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with token, user_id, and role.
        400: Missing credentials.
        401: Invalid credentials (wrong password or email).
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    if not all(isinstance(data.get(field) or "", str) for field in ("email", "password")):
        return jsonify({"error": "email and password must be strings"}), 400
    email: str = (data.get("email") or "").strip()
    password: str = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400

    user = get_db().users.find_by_email(email)

    if not user or not verify_password(user.password_hash, password):
        return jsonify({"error": "Invalid credentials"}), 401

    token = create_token(user.id, user.role)
    get_activity_log().record("info", "User logged in", user_id=user.id, action="LOGIN")

    return jsonify({
        "token": token,
        "user_id": user.id,
        "role": user.role
    }), 200
