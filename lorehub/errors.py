"""
lorehub.errors — Domain Exception Hierarchy
============================================

Every rule violation in the reward core raises one of these.  Services
raise, the surrounding transaction rolls back, and the API layer turns the
exception into a JSON error body using :attr:`LorehubError.status_code`.

Nothing here is retried internally; retries belong to the caller.

Hierarchy::

    LorehubError
    ├── ValidationError
    │   └── NotCompleted
    ├── NotFoundError
    │   ├── UserNotFound
    │   ├── QuestNotFound
    │   ├── AchievementNotFound
    │   ├── ItemNotFound
    │   ├── NotOwned
    │   └── ItemNotInInventory
    ├── ConflictError
    │   ├── AlreadyClaimed
    │   ├── AlreadyUnlocked
    │   └── AlreadyOwned
    ├── AuthorizationError
    ├── Expired
    └── InsufficientCoins
"""

from __future__ import annotations

from typing import Any


class LorehubError(Exception):
    """Base class for all Lorehub domain errors.

    Parameters
    ----------
    message:
        Human-readable description, safe to show to the member.
    details:
        Structured context (ids, amounts) for logs and API bodies.
    error_code:
        Stable identifier for programmatic handling.  Defaults to the
        class name.
    """

    status_code: int = 400

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


# ---------------------------------------------------------------------------
# Generic kinds
# ---------------------------------------------------------------------------
class ValidationError(LorehubError):
    """Missing or malformed identifiers, out-of-range input, unknown enum values."""

    status_code = 400


class NotFoundError(LorehubError):
    """A referenced user, quest, achievement or item does not exist."""

    status_code = 404


class ConflictError(LorehubError):
    """The request collides with existing state (duplicate purchase, bookmark …)."""

    status_code = 409


class AuthorizationError(LorehubError):
    """The caller's role is not allowed to perform the operation."""

    status_code = 403


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class UserNotFound(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User not found", {"user_id": user_id})


class QuestNotFound(NotFoundError):
    def __init__(self, quest_id: str) -> None:
        super().__init__("Quest not found", {"quest_id": quest_id})


class AchievementNotFound(NotFoundError):
    def __init__(self, achievement_id: str) -> None:
        super().__init__("Achievement not found", {"achievement_id": achievement_id})


class ItemNotFound(NotFoundError):
    def __init__(self, item_id: str) -> None:
        super().__init__("Item not found", {"item_id": item_id})


class NotOwned(NotFoundError):
    def __init__(self, item_id: str) -> None:
        super().__init__("Item not found in inventory", {"item_id": item_id})


class ItemNotInInventory(NotFoundError):
    """Raised by the profile path when a ``selected_*`` value is not owned."""

    def __init__(self, field: str, item_id: str) -> None:
        super().__init__(
            f"{field} not found in inventory",
            {"field": field, "item_id": item_id},
        )


# ---------------------------------------------------------------------------
# Terminal states / conflicts
# ---------------------------------------------------------------------------
class AlreadyClaimed(ConflictError):
    def __init__(self, quest_id: str) -> None:
        super().__init__("Quest reward already claimed", {"quest_id": quest_id})


class AlreadyUnlocked(ConflictError):
    def __init__(self, achievement_id: str) -> None:
        super().__init__(
            "Achievement already unlocked", {"achievement_id": achievement_id}
        )


class AlreadyOwned(ConflictError):
    def __init__(self, item_id: str) -> None:
        super().__init__("Item already owned", {"item_id": item_id})


class Expired(LorehubError):
    status_code = 400

    def __init__(self, quest_id: str) -> None:
        super().__init__("Quest has expired", {"quest_id": quest_id})


class NotCompleted(ValidationError):
    def __init__(self, quest_id: str, current: int, target: int) -> None:
        super().__init__(
            "Quest not completed",
            {"quest_id": quest_id, "current_amount": current, "target_amount": target},
        )


class InsufficientCoins(LorehubError):
    status_code = 400

    def __init__(self, balance: int, price: int) -> None:
        super().__init__(
            "Insufficient coins", {"balance": balance, "price": price}
        )
