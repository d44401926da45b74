from functools import wraps
from flask_jwt_extended import verify_jwt_in_request
from jobtrack.services.policy import current_actor
from jobtrack.errors import Forbidden


def require_roles(*roles: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if current_actor().role not in roles:
                raise Forbidden('Missing role')
            return fn(*args, **kwargs)
        return wrapper
    return outer
