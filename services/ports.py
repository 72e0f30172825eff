"""
Ports - collaborators consulted by the workflow engine.

ConfirmationPort:
    Asked before destructive or consequential actions (delete item,
    bulk receive, manifest creation, driver collection, NCR save).
    The engine never proceeds when it answers False.

AuthorizationPort:
    Consulted before an NCR item is edited or deleted. Raises
    AuthorizationError to refuse.
"""

import logging
from typing import Callable, Iterable, Optional, Set

from config import settings
from services.errors import AuthorizationError

logger = logging.getLogger(__name__)


class ItemAction:
    """Actions gated by the authorization port."""
    EDIT = "EDIT"
    DELETE = "DELETE"


class ConfirmationPort:
    """Asks the operator to accept or cancel an action."""

    def confirm(self, prompt: str) -> bool:
        raise NotImplementedError


class AutoConfirm(ConfirmationPort):
    """Accepts every prompt (headless use)."""

    def confirm(self, prompt: str) -> bool:
        return True


class CallbackConfirm(ConfirmationPort):
    """Delegates the decision to a callable, e.g. a modal dialog."""

    def __init__(self, callback: Callable[[str], bool]):
        self.callback = callback

    def confirm(self, prompt: str) -> bool:
        accepted = bool(self.callback(prompt))
        if not accepted:
            logger.info(f"[Confirm] Cancelled: {prompt}")
        return accepted


class AuthorizationPort:
    """Checks whether the current actor may perform an item action."""

    def authorize(self, action: str, credential: Optional[str] = None) -> None:
        raise NotImplementedError


class PassphraseAuthorization(AuthorizationPort):
    """
    Shared-passphrase check.

    Placeholder access control only: every operator shares the same
    secret. Prefer RoleAuthorization where an authenticated session exists.
    """

    def __init__(self, passphrase: Optional[str] = None):
        self.passphrase = passphrase if passphrase is not None else settings.ITEM_EDIT_PASSPHRASE

    def authorize(self, action: str, credential: Optional[str] = None) -> None:
        if credential != self.passphrase:
            logger.warning(f"[Auth] Wrong passphrase for {action}")
            raise AuthorizationError("Incorrect passphrase")


# Roles allowed to perform each item action
ACTION_ROLE_AUTHORITY = {
    ItemAction.EDIT: {"QA_OFFICER", "QA_MANAGER"},
    ItemAction.DELETE: {"QA_MANAGER"},
}


class RoleAuthorization(AuthorizationPort):
    """Capability check against the roles of an authenticated session."""

    def __init__(self, roles: Iterable[str], authority: dict = None):
        self.roles: Set[str] = set(roles)
        self.authority = authority or ACTION_ROLE_AUTHORITY

    def authorize(self, action: str, credential: Optional[str] = None) -> None:
        allowed = self.authority.get(action, set())
        if not self.roles & allowed:
            logger.warning(f"[Auth] Roles {sorted(self.roles)} may not {action}")
            raise AuthorizationError(f"Roles {sorted(self.roles)} are not allowed to {action.lower()} items")
