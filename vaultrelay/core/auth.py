"""Role-based authorization gate for the vault and receiver contracts.

Provides:
- Role enum covering every privileged caller
- Pure predicate evaluating a caller against the contract's role bindings
- ``requires_role`` decorator enforcing the predicate at entry

Roles:
    owner     — governance; may call every privileged entry point
    forwarder — sole caller of the authenticated report entry point
    receiver  — sole non-owner caller of credit / execute-withdraw
    router    — transport router delivering inbound messages to a receiver

Every mutating entry point takes the caller address (``sender``) as its first
argument.  The gate runs before the call opens a transaction, so a rejected
call never touches state.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any, Callable, Mapping, TypeVar

from vaultrelay.core.errors import Unauthorized

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Role(str, Enum):
    OWNER = "owner"
    FORWARDER = "forwarder"
    RECEIVER = "receiver"
    ROUTER = "router"


def _same(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()  # type: ignore[union-attr]


def is_authorized(
    bindings: Mapping[Role, str | None],
    allowed: frozenset[Role] | set[Role],
    caller: str,
) -> bool:
    """Return True if *caller* is bound to any of the *allowed* roles."""
    return any(_same(bindings.get(role), caller) for role in allowed)


def check_role(
    bindings: Mapping[Role, str | None],
    allowed: frozenset[Role] | set[Role],
    caller: str,
    action: str = "",
) -> None:
    """Raise ``Unauthorized`` unless *caller* holds one of *allowed*."""
    if not is_authorized(bindings, allowed, caller):
        logger.debug("Rejected %s: caller %s lacks %s", action, caller, sorted(r.value for r in allowed))
        raise Unauthorized(caller, action)


def requires_role(*roles: Role) -> Callable[[F], F]:
    """Decorator for contract methods whose first argument is the caller.

    Usage:
        @requires_role(Role.RECEIVER, Role.OWNER)
        def credit_user(self, sender, user, token, amount): ...

    The decorated object must expose ``role_bindings() -> Mapping[Role, str]``.
    """
    allowed = frozenset(roles)

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(self: Any, sender: str, *args: Any, **kwargs: Any) -> Any:
            check_role(self.role_bindings(), allowed, sender, fn.__name__)
            return fn(self, sender, *args, **kwargs)

        wrapper.allowed_roles = allowed  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
