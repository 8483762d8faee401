"""
User service routes: the caller's registered events and profile.
"""

from typing import Tuple, Dict, Any

from flask import Blueprint, request, jsonify, Response

from backend.activity_log import get_activity_log
from backend.auth_service.utils import verify_token_from_request
from backend.database.db_connection import get_db
from backend.events_service.service import get_events_service

user_bp = Blueprint("user", __name__)


@user_bp.route("/events", methods=["GET"])
def get_user_events() -> Tuple[Response, int]:
    """
    List the events the caller is registered for, sorted by date.

    Returns:
        200: List of { id, title, description, date, time }.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify(get_events_service().list_user_events(user_id)), 200


@user_bp.route("/profile", methods=["GET"])
def get_profile() -> Tuple[Response, int]:
    """
    Retrieve the caller's profile.

    Returns:
        200: { id, email, name, role, profile }
        404: User not found (token outlived the in-memory store).
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    db = get_db()
    with db.lock:
        user = db.users.get_user(user_id)
        return jsonify(user.to_dict()), 200


@user_bp.route("/profile", methods=["PUT"])
def update_profile() -> Tuple[Response, int]:
    """
    Update specific fields of the caller's profile.

    Allowed fields:
    - name
    - bio
    - interests (list of strings)

    Returns:
        200: Updated profile.
        400: No valid fields provided, or a field has the wrong type.
        404: User not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    db = get_db()
    with db.lock:
        user = db.users.update_profile(user_id, data)
        body = user.to_dict()

    get_activity_log().record("info", "Profile updated", user_id=user_id, action="UPDATE_PROFILE")
    return jsonify(body), 200
