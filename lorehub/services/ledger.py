"""
lorehub.services.ledger — Coin Balance Primitives
==================================================

Every coin movement in the reward core goes through these helpers, always
inside a caller-owned session so the balance change commits or rolls back
together with the quest / achievement / inventory row that caused it.

* :func:`credit_coins` is an atomic ``coins = coins + :amount``.
* :func:`debit_coins` is conditional on ``coins >= :amount`` so two
  concurrent purchases can never drive a balance negative.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from lorehub.database.models import User
from lorehub.errors import InsufficientCoins, UserNotFound, ValidationError

logger = logging.getLogger(__name__)


def require_id(value: object, field: str = "id") -> str:
    """Return *value* if it is a well-formed UUID string.

    Raises
    ------
    ValidationError
        On empty, non-string or malformed identifiers.
    """
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required", {field: value})
    try:
        uuid.UUID(value)
    except ValueError as exc:
        raise ValidationError(f"{field} is malformed", {field: value}) from exc
    return value


def lock_user(session: Session, user_id: str) -> User:
    """Load the user row with ``SELECT … FOR UPDATE``.

    SQLite has no row locks; the clause is dropped there and the database
    level write lock serializes instead.
    """
    user = session.scalar(
        select(User).where(User.id == user_id).with_for_update()
    )
    if user is None:
        raise UserNotFound(user_id)
    return user


def get_user(session: Session, user_id: str) -> User:
    """Plain read of the user row; no lock."""
    user = session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


def get_balance(session: Session, user_id: str) -> int:
    balance = session.scalar(select(User.coins).where(User.id == user_id))
    if balance is None:
        raise UserNotFound(user_id)
    return balance


def credit_coins(session: Session, user_id: str, amount: int) -> int:
    """Add *amount* coins to the user's balance and return the new balance."""
    if amount < 0:
        raise ValidationError("Credit amount must not be negative", {"amount": amount})
    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(coins=User.coins + amount)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise UserNotFound(user_id)
    balance = get_balance(session, user_id)
    logger.debug("Credited %d coins to %s (balance=%d)", amount, user_id, balance)
    return balance


def debit_coins(session: Session, user_id: str, amount: int) -> int:
    """Remove *amount* coins if the balance covers it; return the new balance.

    Raises
    ------
    InsufficientCoins
        If the balance is below *amount*.  Nothing is written.
    UserNotFound
        If the user row does not exist.
    """
    if amount < 0:
        raise ValidationError("Debit amount must not be negative", {"amount": amount})
    result = session.execute(
        update(User)
        .where(User.id == user_id, User.coins >= amount)
        .values(coins=User.coins - amount)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise InsufficientCoins(get_balance(session, user_id), amount)
    balance = get_balance(session, user_id)
    logger.debug("Debited %d coins from %s (balance=%d)", amount, user_id, balance)
    return balance
