from functools import wraps
from flask import abort, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from backoffice.services.policy import missing_permissions


def require_permissions(*codes: str):
    """Verify the JWT, then 403 unless its `perms` claim holds every code."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            missing = missing_permissions(*codes)
            if missing:
                current_app.logger.info('User %s denied %s: missing %s', get_jwt_identity(), fn.__name__, ', '.join(missing))
                abort(403, description=f"Missing permission: {', '.join(missing)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer
