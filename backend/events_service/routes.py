"""
Events service routes: create, read, update, delete events, and registration.
Handles event lifecycle management and participation.

Domain errors raised by the lifecycle service (404, 403, capacity
conflicts, validation) propagate to the gateway's error handler.
"""

import logging
from typing import Tuple, Dict, Any

from flask import Blueprint, request, jsonify, Response

from backend.activity_log import get_activity_log, parse_filter_datetime
from backend.auth_service.utils import verify_token_from_request
from backend.database.event_store import EventPatch, parse_date
from backend.events_service.service import get_events_service

events_bp = Blueprint("events", __name__)


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


@events_bp.route("", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event owned by the caller.

    Expects JSON: { title, description?, date (YYYY-MM-DD), time (HH:MM), capacity }

    Returns:
        201: { message, event }
        400: Missing or invalid fields.
        401: Missing/invalid token.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    event = get_events_service().create_event(user_id, data)

    return jsonify({
        "message": "Event created successfully",
        "event": {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "date": event.date.isoformat(),
            "time": event.time,
            "capacity": event.capacity,
            "createdAt": event.created_at,
        }
    }), 201


@events_bp.route("", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return all events sorted by date, annotated for the caller.

    Filters:
    - ?date=YYYY-MM-DD : only events on that date.
    - ?query=<text>    : case-insensitive match on title or description.

    Returns:
        200: { total, events, filters }
        400: Malformed date filter.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    date_str = request.args.get("date")
    query = request.args.get("query")

    on_date = None
    if date_str:
        on_date = parse_date(date_str)
        if on_date is None:
            return jsonify({"error": "Invalid date format. Use YYYY-MM-DD."}), 400

    events = get_events_service().list_events(user_id, on_date=on_date, query=query)

    return jsonify({
        "total": len(events),
        "events": events,
        "filters": {"date": date_str, "query": query}
    }), 200


@events_bp.route("/logs", methods=["GET"])
def get_logs() -> Tuple[Response, int]:
    """
    Return the caller's own activity log, newest first.

    Filters: startDate, endDate (ISO-8601), action, level.

    Returns:
        200: { total, filters, logs }
        400: Malformed start or end date.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    start_str = request.args.get("startDate")
    end_str = request.args.get("endDate")
    action = request.args.get("action")
    level = request.args.get("level")

    try:
        start = parse_filter_datetime(start_str)
    except ValueError:
        return jsonify({"error": "Invalid start date format"}), 400
    try:
        end = parse_filter_datetime(end_str)
    except ValueError:
        return jsonify({"error": "Invalid end date format"}), 400

    activity = get_activity_log()
    logs = activity.entries_for(user_id, start=start, end=end, action=action, level=level)
    activity.record(
        "info",
        "Logs retrieved successfully",
        user_id=user_id,
        action="FETCH_LOGS",
        metadata={"filteredLogs": len(logs)},
    )

    return jsonify({
        "total": len(logs),
        "filters": {
            "startDate": start_str,
            "endDate": end_str,
            "action": action,
            "level": level,
        },
        "logs": logs
    }), 200


@events_bp.route("/<event_id>", methods=["GET"])
def get_event(event_id: str) -> Tuple[Response, int]:
    """
    Get a single event, annotated for the caller.

    Returns:
        200: Event view.
        404: Event not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify(get_events_service().get_event_view(event_id, user_id)), 200


@events_bp.route("/<event_id>", methods=["PUT"])
def update_event(event_id: str) -> Tuple[Response, int]:
    """
    Update an event. Only the creator may do this.

    Fields sent in the body overwrite; fields left out keep their value.
    Participants are emailed when the date or time changes.

    Returns:
        200: { message, event, updatedFields }
        400: Validation error, or capacity below current participants
             (with currentParticipants).
        403: Caller is not the creator.
        404: Event not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    patch = EventPatch.from_json(data)
    if not patch:
        return jsonify({"error": "No update data provided"}), 400

    event, changed = get_events_service().update_event(event_id, user_id, patch)

    return jsonify({
        "message": "Event updated successfully",
        "event": event,
        "updatedFields": changed
    }), 200


@events_bp.route("/<event_id>", methods=["DELETE"])
def delete_event(event_id: str) -> Tuple[Response, int]:
    """
    Delete an event if the caller is its creator. Every participant is
    unregistered and sent a cancellation notice.

    Returns:
        200: { message, eventDetails: { id, title, participantsNotified } }
        403: Caller is not the creator.
        404: Event not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    details = get_events_service().delete_event(event_id, user_id)

    return jsonify({
        "message": "Event deleted successfully",
        "eventDetails": details
    }), 200


@events_bp.route("/<event_id>/register", methods=["POST"])
def register(event_id: str) -> Tuple[Response, int]:
    """
    Register the caller for an event.

    Returns:
        200: { message, eventId, event: { title, date, time, spotsRemaining } }
        400: Event is full, or caller already registered.
        404: Event not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    result = get_events_service().register(event_id, user_id)

    return jsonify({
        "message": "Successfully registered for event",
        "eventId": result["eventId"],
        "event": {
            "title": result["title"],
            "date": result["date"],
            "time": result["time"],
            "spotsRemaining": result["spotsRemaining"],
        }
    }), 200
