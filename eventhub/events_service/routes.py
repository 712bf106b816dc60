"""
Events service routes: create, read, update, delete events, and registration.
Handles event lifecycle management and participation.

Store errors (not found, ownership, admission control) propagate to the
gateway's error handlers, which map them to 403/404/409 responses.
"""

import logging
import math
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, jsonify, request

from eventhub.auth_service.utils import optional_user, verify_token_from_request
from eventhub.core.config import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DESCRIPTION_MAX_LENGTH,
    DURATION_MAX,
    DURATION_MIN,
    EVENT_CATEGORIES,
    EVENT_STATUSES,
    MAX_LIMIT,
    MAX_PARTICIPANTS_MAX,
    MAX_PARTICIPANTS_MIN,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)
from eventhub.core.services import get_services
from eventhub.core.timeutil import parse_dt, to_iso, utc_now
from eventhub.core.validation import is_text
from eventhub.events_service.store import EventFilters

events_bp = Blueprint("events", __name__)


@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_event_payload(data: Dict[str, Any], partial: bool = False) -> Optional[str]:
    """
    Field-shape checks for create (partial=False) and update (partial=True).

    Returns:
        str: The first problem found, or None if the payload is acceptable.
    """
    if not partial:
        if not data.get("title") or not data.get("date"):
            return "title and date are required"

    if "title" in data:
        title = data.get("title")
        if not is_text(title) or not (TITLE_MIN_LENGTH <= len(title.strip()) <= TITLE_MAX_LENGTH):
            return f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters."

    if "description" in data:
        description = data.get("description")
        if description is not None and (not is_text(description) or len(description) > DESCRIPTION_MAX_LENGTH):
            return f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less."

    if "date" in data and not parse_dt(data.get("date")):
        return "Invalid date format. Use ISO-8601."

    if "duration" in data:
        duration = data.get("duration")
        if not _is_int(duration) or not (DURATION_MIN <= duration <= DURATION_MAX):
            return f"duration must be between {DURATION_MIN} and {DURATION_MAX} minutes"

    if data.get("max_participants") is not None:
        limit = data.get("max_participants")
        if not _is_int(limit) or not (MAX_PARTICIPANTS_MIN <= limit <= MAX_PARTICIPANTS_MAX):
            return f"max_participants must be between {MAX_PARTICIPANTS_MIN} and {MAX_PARTICIPANTS_MAX}"

    if "category" in data and data.get("category") not in EVENT_CATEGORIES:
        return f"category must be one of: {', '.join(EVENT_CATEGORIES)}"

    if "status" in data and data.get("status") not in EVENT_STATUSES:
        return f"status must be one of: {', '.join(EVENT_STATUSES)}"

    if "is_public" in data and not isinstance(data.get("is_public"), bool):
        return "is_public must be true or false"

    return None


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _query_bool(name: str) -> Optional[bool]:
    raw = request.args.get(name)
    if raw is None:
        return None
    return raw.strip().lower() == "true"


def _query_int(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@events_bp.route("/", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return events matching the query filters, sorted by date.

    Filters:
    - ?category=, ?status=, ?is_public=true|false
    - ?start_date=, ?end_date= (ISO-8601, inclusive)
    - ?page=, ?limit= for pagination

    Visibility:
    - Organizers see public and private events.
    - Everyone else (including anonymous callers) sees public events only.

    Returns:
        200: Page of events plus pagination info.
        400: Invalid date filter.
    """
    user = optional_user()

    filters = EventFilters.from_dict({
        "category": request.args.get("category"),
        "status": request.args.get("status"),
        "is_public": _query_bool("is_public"),
        "start_date": request.args.get("start_date"),
        "end_date": request.args.get("end_date"),
    })
    events = get_services().events.find_with_filters(filters)

    if user is None or user.role != "organizer":
        events = [e for e in events if e.is_public]

    page = max(_query_int("page", DEFAULT_PAGE), 1)
    limit = min(max(_query_int("limit", DEFAULT_LIMIT), 1), MAX_LIMIT)
    start = (page - 1) * limit
    end = start + limit

    return jsonify({
        "events": [e.to_public_dict() for e in events[start:end]],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(len(events) / limit),
            "total_events": len(events),
            "has_next_page": end < len(events),
            "has_prev_page": page > 1,
        },
    }), 200


@events_bp.route("/<event_id>", methods=["GET"])
def get_event(event_id: str) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Features:
    - Private events are visible to their organizer and to organizer accounts.
    - The owning organizer also receives the participant list.

    Returns:
        200: Event object.
        403: Permission denied (private event).
        404: Event not found.
    """
    user = optional_user()
    event = get_services().events.find_by_id(event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404

    is_owner = user is not None and user.id == event.organizer_id
    if not event.is_public and not (is_owner or (user is not None and user.role == "organizer")):
        return jsonify({"error": "Access denied to this private event"}), 403

    data = event.to_organizer_dict() if is_owner else event.to_public_dict()
    return jsonify({"event": data}), 200


@events_bp.route("/", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event owned by the calling organizer.

    Returns:
        201: { "event": {...} }
        400: Validation error.
        403: Caller is not an organizer.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code
    if user.role != "organizer":
        return jsonify({"error": "Only organizers can create events"}), 403

    data: Dict[str, Any] = _json_body()
    problem = validate_event_payload(data)
    if problem:
        return jsonify({"error": problem}), 400

    event = get_services().events.create(data, user.id)

    return jsonify({"message": "Event created successfully", "event": event.to_organizer_dict()}), 201


@events_bp.route("/<event_id>", methods=["PUT"])
def update_event(event_id: str) -> Tuple[Response, int]:
    """
    Update an event.

    Permission:
    - Only the organizer who owns the event.

    Returns:
        200: Updated event.
        400: Validation error.
        403: Not the organizer.
        404: Event not found.
        409: New capacity below current registrations.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = _json_body()
    if not data:
        return jsonify({"error": "No update data provided"}), 400
    problem = validate_event_payload(data, partial=True)
    if problem:
        return jsonify({"error": problem}), 400

    event = get_services().events.update(event_id, data, user.id)

    return jsonify({"message": "Event updated successfully", "event": event.to_organizer_dict()}), 200


@events_bp.route("/<event_id>", methods=["DELETE"])
def delete_event(event_id: str) -> Tuple[Response, int]:
    """
    Delete an event if the caller is its organizer.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    get_services().events.delete(event_id, user.id)

    return jsonify({"status": "deleted"}), 200


@events_bp.route("/<event_id>/register", methods=["POST"])
def register_for_event(event_id: str) -> Tuple[Response, int]:
    """
    Register the caller for an event.

    Returns:
        200: Registrant view of the event.
        404: Event not found.
        409: Event full or already registered.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    event = get_services().events.register_participant(event_id, user.id)

    return jsonify({
        "message": "Successfully registered for the event",
        "event": event.to_registrant_dict(),
        "registration_date": utc_now().isoformat(),
    }), 200


@events_bp.route("/<event_id>/register", methods=["DELETE"])
def unregister_from_event(event_id: str) -> Tuple[Response, int]:
    """
    Withdraw the caller's registration.

    Returns:
        200: Registrant view of the event.
        404: Event not found.
        409: Caller was not registered.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    event = get_services().events.unregister_participant(event_id, user.id)

    return jsonify({
        "message": "Successfully unregistered from the event",
        "event": event.to_registrant_dict(),
    }), 200


@events_bp.route("/my/organized", methods=["GET"])
def get_my_events() -> Tuple[Response, int]:
    """
    Events organized by the caller (organizers only), with participant lists.
    """
    user, err, code = verify_token_from_request(required_roles=["organizer"])
    if err:
        return err, code

    events = get_services().events.find_by_organizer(user.id)

    return jsonify({"events": [e.to_organizer_dict() for e in events], "total": len(events)}), 200


@events_bp.route("/my/registrations", methods=["GET"])
def get_my_registrations() -> Tuple[Response, int]:
    """
    Events the caller is registered for.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    events = get_services().events.find_by_participant(user.id)

    return jsonify({"events": [e.to_registrant_dict() for e in events], "total": len(events)}), 200


@events_bp.route("/<event_id>/participants", methods=["GET"])
def get_event_participants(event_id: str) -> Tuple[Response, int]:
    """
    Participant details for an event, in registration order.
    Restricted to the event's organizer. Accounts deleted since
    registering are skipped.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    services = get_services()
    event = services.events.find_by_id(event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404
    if event.organizer_id != user.id:
        return jsonify({"error": "Only the event organizer can view participants"}), 403

    participants = []
    for participant_id in event.participants:
        participant = services.users.find_by_id(participant_id)
        if participant is not None:
            participants.append({
                "id": participant.id,
                "first_name": participant.first_name,
                "last_name": participant.last_name,
                "email": participant.email,
            })

    return jsonify({
        "event": {
            "id": event.id,
            "title": event.title,
            "date": to_iso(event.date),
            "participant_count": event.participant_count(),
            "max_participants": event.max_participants,
        },
        "participants": participants,
        "total": len(participants),
    }), 200


@events_bp.route("/<event_id>/stats", methods=["GET"])
def get_event_stats(event_id: str) -> Tuple[Response, int]:
    """
    Registration statistics for an event. Organizer of the event only.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    event = get_services().events.find_by_id(event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404
    if event.organizer_id != user.id:
        return jsonify({"error": "Only the event organizer can view event statistics"}), 403

    return jsonify(event.to_stats()), 200
