from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..services.auth_service import get_current_user
from ..services.db_service import get_db
from ..services.user_service import UserCreationError, create_user

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")


@bp.post("/users")
def users_create():
    user = get_current_user()
    if user is None:
        return jsonify({"error": "Unauthorized"}), 401
    if "admin" not in user["roles"]:
        return jsonify({"error": "Only admins can create users"}), 403

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        created = create_user(
            get_db(),
            full_name=str(payload.get("full_name") or ""),
            identifier=str(payload.get("identifier") or ""),
            role=str(payload.get("role") or ""),
            class_id=payload.get("class_id") or None,
            avatar_url=payload.get("avatar_url") or None,
        )
    except UserCreationError as e:
        return jsonify({"error": str(e)}), 400
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"success": True, "user": created}), 200
