from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from tailorshop.services.policy import has_permissions, has_any_permission


def require_permissions(*codes: str):
    """All listed permission codes must be present in the caller's token."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_permissions(*codes):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_permission(*codes: str):
    """At least one of the codes; used where staff and the owning customer share a route."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_any_permission(*codes):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer
