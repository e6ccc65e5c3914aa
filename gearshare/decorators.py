from functools import wraps

from flask import abort, request
from flask_login import current_user

from gearshare.context import OperationContext


def role_required(*roles):
    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper


def operation_context():
    """Context for the current request, tagged with the caller's request id."""
    raw = request.headers.get("X-Request-Id") or request.args.get("request_id")
    try:
        request_id = int(raw) if raw is not None else 0
    except ValueError:
        request_id = 0
    actor_id = current_user.id if current_user.is_authenticated else None
    return OperationContext(request_id=request_id, actor_id=actor_id)
