"""
Workday Close Service
Request identity.

Authentication happens upstream.  The gateway forwards the authenticated
worker on every request:

    X-User-Id       integer worker id
    X-User-Role     admin | team_manager | member
    X-Gateway-Token shared secret, checked only when GATEWAY_TOKEN is set

This module only reads those headers into ``g.identity``; it never issues
or verifies credentials itself.

Usage:
    @bp.route("/admin/routine-tasks", methods=["POST"])
    @require_role("admin")
    def create_routine_task():
        identity = g.identity
"""

import functools
import hmac
import logging
from dataclasses import dataclass

from flask import current_app, g, request

from workday.core.exceptions import Unauthorized
from workday.models.worker import WorkerRole

logger = logging.getLogger(__name__)

ROLES = frozenset(r.value for r in WorkerRole)

# Paths served without an identity
_PUBLIC_PREFIXES = ("/api/v1/health",)


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == WorkerRole.ADMIN.value


def _gateway_token_ok() -> bool:
    expected = current_app.config.get("GATEWAY_TOKEN")
    if not expected:
        return True
    supplied = request.headers.get("X-Gateway-Token", "")
    return hmac.compare_digest(supplied.encode(), expected.encode())


def identity_from_headers() -> Identity | None:
    """Parse the forwarded identity; None when absent or malformed."""
    raw_id = request.headers.get("X-User-Id", "").strip()
    role = request.headers.get("X-User-Role", "").strip().lower()
    if not raw_id.isdigit() or role not in ROLES:
        return None
    return Identity(user_id=int(raw_id), role=role)


def init_identity(app):
    """Populate ``g.identity`` for every API request."""

    @app.before_request
    def _load_identity():
        g.identity = None
        if not request.path.startswith("/api/") or request.path.startswith(_PUBLIC_PREFIXES):
            return None
        if not _gateway_token_ok():
            logger.warning(
                "Rejected request with bad gateway token",
                extra={"path": request.path, "remote_addr": request.remote_addr},
            )
            raise Unauthorized("Invalid gateway token")
        g.identity = identity_from_headers()
        if g.identity is not None:
            g.worker_id = g.identity.user_id
        return None


def current_identity() -> Identity:
    identity = getattr(g, "identity", None)
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity


def ensure_role(identity: Identity, *roles: str) -> None:
    if identity.role not in roles:
        logger.warning(
            "Access denied: role '%s' not in %s", identity.role, roles,
            extra={"worker_id": identity.user_id},
        )
        raise Unauthorized(f"Requires role: {', '.join(roles)}", forbidden=True)


def require_identity(f):
    """Decorator: the request must carry a forwarded identity."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        current_identity()
        return f(*args, **kwargs)
    return decorated


def require_role(*roles: str):
    """
    Decorator: the forwarded identity must hold one of ``roles``.

    Usage:
        @require_role("admin", "team_manager")
        def resolve(user_id, day): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            ensure_role(current_identity(), *roles)
            return f(*args, **kwargs)
        return decorated
    return decorator
