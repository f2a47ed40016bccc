# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .errors import ValidationError
from .permissions import Actor, Capability, parse_role


def _is_authenticated() -> bool:
    return hasattr(g, "actor")


def require_auth(f):
    """
    Resolve the calling actor from the identity gateway's headers.

    The gateway has already authenticated the user; it forwards the user id
    and role claim (header names from ACTOR_ID_HEADER / ACTOR_ROLE_HEADER).
    Sets g.actor to an Actor.

    Returns 401 if either header is missing or the role is not recognised.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = request.headers.get(current_app.config["ACTOR_ID_HEADER"], "").strip()
        raw_role = request.headers.get(current_app.config["ACTOR_ROLE_HEADER"])

        if not actor_id or not raw_role:
            return jsonify({"status": "error", "message": "Authentication required"}), 401

        try:
            role = parse_role(raw_role)
        except ValidationError:
            current_app.logger.warning("Rejected unknown role claim %r for actor %s", raw_role, actor_id)
            return jsonify({"status": "error", "message": "Invalid role claim"}), 401

        g.actor = Actor(actor_id=actor_id, role=role)
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: Capability):
    """Reject with 403 unless g.actor's role grants the capability."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"status": "error", "message": "Authentication required"}), 401

            if not g.actor.can(capability):
                current_app.logger.info(
                    "Denied %s %s to %s (%s)", request.method, request.path, g.actor.actor_id, g.actor.role.value,
                )
                return jsonify({
                    "status": "error",
                    "message": "Permission denied",
                    "required_capability": capability.value,
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
