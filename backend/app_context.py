"""Late-bound hooks registered by ``backend.main`` for the modular routers.

Routers and repositories import this module instead of ``backend.main`` so
they can be loaded (and tested) without pulling in the FastAPI app.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

_hooks: Dict[str, Callable[..., Any]] = {}


def configure(
    *,
    get_conn: Callable[[], Any],
    get_current_user: Callable[..., Any],
    get_optional_current_user: Callable[..., Optional[Any]],
) -> None:
    _hooks.update(
        get_conn=get_conn,
        get_current_user=get_current_user,
        get_optional_current_user=get_optional_current_user,
    )


def _hook(name: str) -> Callable[..., Any]:
    try:
        return _hooks[name]
    except KeyError:
        raise RuntimeError(f"backend.main has not registered {name} yet") from None


def get_conn() -> Any:
    return _hook("get_conn")()


def get_current_user(session_token: Optional[str]) -> Any:
    """Resolve the session user or raise the app's 401."""

    return _hook("get_current_user")(session_token=session_token)


def get_optional_current_user(session_token: Optional[str]) -> Optional[Any]:
    return _hook("get_optional_current_user")(session_token=session_token)


__all__ = ["configure", "get_conn", "get_current_user", "get_optional_current_user"]
