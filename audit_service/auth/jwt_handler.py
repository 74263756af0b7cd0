"""JWT helper utilities for verifying admin tokens and enforcing access."""

from functools import wraps

import jwt
from flask import current_app, g, has_app_context, request

from audit_service.config import Config, get_config
from audit_service.routes.helpers import error_response

SUPER_ADMIN_ROLE = "SUPER_ADMIN"
AUDIT_VIEW_PERMISSION = "AUDIT_VIEW"


def _config() -> Config:
    """Return the active application configuration."""

    if has_app_context():
        app_config = current_app.config.get("APP_CONFIG")
        if isinstance(app_config, Config):
            return app_config
    return get_config()


def decode_jwt(token: str):
    """Decode a JWT.

    Args:
        token (str): The JWT to decode.

    Returns:
        dict: The decoded JWT payload.
    """
    config = _config()
    return jwt.decode(
        token,
        config.jwt_secret,
        algorithms=[config.jwt_algorithm],
    )


def has_permission(payload: dict, permission: str) -> bool:
    """Return whether the token payload grants ``permission``."""

    if payload.get("role") == SUPER_ADMIN_ROLE:
        return True
    permissions = payload.get("permissions") or []
    return permission in permissions


def require_permission(permission: str):
    """Decorator requiring a bearer token that grants ``permission``."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                return error_response(401, "missing token")
            token = auth.split(" ", 1)[1]
            try:
                payload = decode_jwt(token)
            except jwt.PyJWTError as exc:
                return error_response(401, str(exc))
            if not has_permission(payload, permission):
                return error_response(403, "insufficient permissions")
            g.admin = payload
            return fn(*args, **kwargs)

        return wrapper

    return decorator
