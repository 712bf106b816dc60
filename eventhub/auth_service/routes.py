"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login
- Profile retrieval and update (/me)
- Password change
- Account deactivation and deletion
- User statistics
- Organizer-only user listing

Token logic is delegated to `auth_service.utils`; all reads and writes go
through the UserStore bound to the current app.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, jsonify, request

from eventhub.auth_service.utils import verify_token_from_request
from eventhub.core.config import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MIN_LENGTH,
    USER_ROLES,
)
from eventhub.core.exceptions import DuplicateKeyError, InvalidCredentialsError
from eventhub.core.services import get_services
from eventhub.core.validation import is_text

auth_bp = Blueprint("auth", __name__)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
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


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _check_text(data: Dict[str, Any], *names: str) -> Optional[str]:
    """Return an error for the first named field that is present but not text."""
    for name in names:
        value = data.get(name)
        if value is not None and not is_text(value):
            return f"{name} must be a string"
    return None


def _check_name(value: Any, label: str) -> Optional[str]:
    if not is_text(value) or not (NAME_MIN_LENGTH <= len(value.strip()) <= NAME_MAX_LENGTH):
        return f"{label} must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
    return None


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user in the system.

    Expects a JSON body with:
    - email (str): Unique email address (case-insensitive).
    - password (str): Minimum 8 characters.
    - confirm_password (str): Must match password.
    - first_name (str)
    - last_name (str)
    - role (str, optional): 'organizer' or 'attendee' (default).

    Returns:
        201: JSON with the created user (no token; log in separately).
        400: Missing fields or invalid input.
        409: Email already exists.
    """
    data: Dict[str, Any] = _json_body()
    problem = _check_text(data, "email", "password", "confirm_password", "first_name", "last_name", "role")
    if problem:
        return jsonify({"error": problem}), 400
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    confirm: str = data.get("confirm_password") or ""
    first_name = data.get("first_name")
    last_name = data.get("last_name")
    role: str = data.get("role") or "attendee"

    # Validate input
    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400
    if not first_name or not last_name:
        return jsonify({"error": "First and last name required"}), 400
    if password != confirm:
        return jsonify({"error": "Password confirmation does not match password"}), 400
    if len(password) < PASSWORD_MIN_LENGTH:
        return jsonify({"error": f"Password must be at least {PASSWORD_MIN_LENGTH} characters"}), 400
    for value, label in ((first_name, "First name"), (last_name, "Last name")):
        problem = _check_name(value, label)
        if problem:
            return jsonify({"error": problem}), 400
    if role not in USER_ROLES:
        return jsonify({"error": f"role must be one of: {', '.join(USER_ROLES)}"}), 400

    try:
        user = get_services().users.create(email, password, first_name, last_name, role)
    except DuplicateKeyError:
        return jsonify({"error": "Email already exists"}), 409

    return jsonify({"message": "User registered successfully", "user": user.to_dict()}), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with the user and a JWT token.
        400: Missing credentials.
        401: Invalid credentials or deactivated account.
    """
    data: Dict[str, Any] = _json_body()
    problem = _check_text(data, "email", "password")
    if problem:
        return jsonify({"error": problem}), 400
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400

    services = get_services()
    try:
        user = services.users.authenticate(email, password)
    except InvalidCredentialsError as e:
        return jsonify({"error": e.message}), 401

    token = services.tokens.issue(user)

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "token": token,
    }), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's profile.

    Requires Authorization header: Bearer <token>

    Returns:
        200: User profile object.
        401: Authentication failure.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify({"user": user.to_dict()}), 200


# --- UPDATE CURRENT USER ---
@auth_bp.route("/me", methods=["PUT"])
def update_current_user() -> Tuple[Response, int]:
    """
    Update specific fields of the current user's profile.

    Allowed fields:
    - first_name, last_name
    - email

    Requires Authorization header: Bearer <token>

    Returns:
        200: Updated user object.
        400: No valid fields provided.
        401: Authentication failure.
        409: Email already taken by another account.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = _json_body()

    allowed = ["first_name", "last_name", "email"]
    fields = {k: v for k, v in data.items() if k in allowed and v}

    if not fields:
        return jsonify({"error": "No valid fields provided"}), 400

    problem = _check_text(fields, "email")
    if problem:
        return jsonify({"error": problem}), 400

    for key, label in (("first_name", "First name"), ("last_name", "Last name")):
        if key in fields:
            problem = _check_name(fields[key], label)
            if problem:
                return jsonify({"error": problem}), 400

    try:
        updated = get_services().users.update(user.id, fields)
    except DuplicateKeyError:
        return jsonify({"error": "Email already exists"}), 409

    return jsonify({"message": "Profile updated successfully", "user": updated.to_dict()}), 200


# --- CHANGE PASSWORD ---
@auth_bp.route("/change-password", methods=["PUT"])
def change_password() -> Tuple[Response, int]:
    """
    Change the current user's password.

    Expects JSON:
        { "current_password", "new_password", "confirm_new_password" }

    Returns:
        200: Password changed.
        400: Missing fields, mismatch, or too short.
        401: Current password incorrect / authentication failure.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = _json_body()
    problem = _check_text(data, "current_password", "new_password", "confirm_new_password")
    if problem:
        return jsonify({"error": problem}), 400
    current = data.get("current_password") or ""
    new = data.get("new_password") or ""
    confirm = data.get("confirm_new_password") or ""

    if not current or not new or not confirm:
        return jsonify({"error": "Current password, new password, and password confirmation are required"}), 400
    if new != confirm:
        return jsonify({"error": "New password confirmation does not match new password"}), 400
    if len(new) < PASSWORD_MIN_LENGTH:
        return jsonify({"error": f"New password must be at least {PASSWORD_MIN_LENGTH} characters long"}), 400

    try:
        get_services().users.change_password(user.id, current, new)
    except InvalidCredentialsError as e:
        return jsonify({"error": e.message}), 401

    return jsonify({"message": "Password changed successfully"}), 200


# --- LOGOUT ---
@auth_bp.route("/logout", methods=["POST"])
def logout() -> Tuple[Response, int]:
    """
    Tokens are stateless; logout only confirms the caller was authenticated.
    The client discards its token.
    """
    _, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify({"message": "Logout successful"}), 200


# --- USER STATS ---
@auth_bp.route("/stats", methods=["GET"])
def get_user_stats() -> Tuple[Response, int]:
    """
    Basic account statistics for the current user.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify(user.to_stats()), 200


# --- DEACTIVATE ACCOUNT ---
@auth_bp.route("/deactivate", methods=["DELETE"])
def deactivate_account() -> Tuple[Response, int]:
    """
    Deactivate the authenticated user's account. Existing tokens stop
    resolving immediately and login is rejected.

    Returns:
        200: Account deactivated.
        401: Authentication failure.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    get_services().users.deactivate(user.id)

    return jsonify({"message": "Account deactivated successfully"}), 200


# --- DELETE ACCOUNT ---
@auth_bp.route("/delete", methods=["POST"])
def delete_account() -> Tuple[Response, int]:
    """
    Delete the authenticated user's account permanently. Events it organizes
    are deleted and its registrations are withdrawn; if the account delete
    fails, the events are left as they were.

    Requires Authorization header: Bearer <token>

    Returns:
        200: JSON status "deleted".
        401: Authentication failure.
    """
    user, err, code = verify_token_from_request()
    if err:
        return err, code

    services = get_services()
    services.events.release_user(user.id, then=lambda: services.users.delete(user.id))

    return jsonify({"status": "deleted"}), 200


# --- LIST USERS (ORGANIZERS ONLY) ---
@auth_bp.route("/users", methods=["GET"])
def list_users() -> Tuple[Response, int]:
    """
    Organizer-only endpoint to list all users in the system.

    Query:
    - ?role=<organizer|attendee> : Filter by role.

    Returns:
        200: List of user summaries.
        401/403: Unauthorized (not an organizer).
    """
    _, err, code = verify_token_from_request(required_roles=["organizer"])
    if err:
        return err, code

    users = get_services().users
    role = request.args.get("role")
    found = users.find_by_role(role) if role else users.find_all()

    return jsonify({"users": [u.to_summary() for u in found], "total": len(found)}), 200
