from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.portal.records import ADMIN_ROLE


def require_module(module_tag: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            gate = getattr(g, "gate", None)
            # Unauthenticated → 401 (the client shows its login screen).
            if gate is None or not gate.is_authenticated:
                abort(401)
            # Authenticated but unauthorized → 403
            if not gate.is_authorized(module_tag):
                g.missing_module = module_tag
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    return require_module(ADMIN_ROLE)(fn)
