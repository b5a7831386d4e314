"""
lorehub.services.shop_service — Shop Catalog, Purchases & Inventory
====================================================================

Purchases are one transaction: conditional coin debit plus inventory
insert.  A unique ``(user_id, item_id)`` constraint backs the ownership
check, so two concurrent purchases of the same item produce one row and
one debit; the loser rolls back with :class:`AlreadyOwned`.

Activation keeps at most one active inventory item per slot (theme,
badge, frame) and mirrors the choice into ``users.selected_<slot>``.  The
profile editor goes through :func:`activate_owned_item` /
:func:`clear_slot` too, so both paths enforce the same rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from lorehub.constants import SLOT_FIELDS, SlotType
from lorehub.database.engine import get_session
from lorehub.database.models import InventoryItem, ShopItem, User
from lorehub.errors import AlreadyOwned, ItemNotFound, NotOwned
from lorehub.services.ledger import debit_coins, get_user, lock_user, require_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    new_balance: int
    inventory_item: InventoryItem


# ---------------------------------------------------------------------------
# Session-level helpers (shared with profile_service)
# ---------------------------------------------------------------------------
def find_inventory_entry(
    session: Session, user_id: str, item_id: str
) -> InventoryItem | None:
    return session.scalar(
        select(InventoryItem)
        .options(joinedload(InventoryItem.item))
        .where(InventoryItem.user_id == user_id, InventoryItem.item_id == item_id)
    )


def _deactivate_slot(
    session: Session, user_id: str, slot: SlotType, *, keep: str | None = None
) -> None:
    slot_items = select(ShopItem.id).where(ShopItem.type == slot.value)
    stmt = update(InventoryItem).where(
        InventoryItem.user_id == user_id,
        InventoryItem.item_id.in_(slot_items),
        InventoryItem.is_active.is_(True),
    )
    if keep is not None:
        stmt = stmt.where(InventoryItem.id != keep)
    session.execute(
        stmt.values(is_active=False).execution_options(synchronize_session="fetch")
    )


def activate_owned_item(session: Session, user: User, entry: InventoryItem) -> InventoryItem:
    """Make *entry* the single active item of its slot for *user*.

    The caller must hold the user row lock.
    """
    slot = SlotType(entry.item.type)
    _deactivate_slot(session, user.id, slot, keep=entry.id)
    entry.is_active = True
    setattr(user, SLOT_FIELDS[slot], entry.item_id)
    session.flush()
    return entry


def clear_slot(session: Session, user: User, slot: SlotType) -> None:
    """Deactivate every item of *slot* and clear ``selected_<slot>``."""
    _deactivate_slot(session, user.id, slot)
    setattr(user, SLOT_FIELDS[slot], None)
    session.flush()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
def get_all_items(engine: Engine) -> list[ShopItem]:
    """The shop catalog, grouped by type and cheapest first."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(ShopItem).order_by(ShopItem.type, ShopItem.price, ShopItem.name)
        ).all())


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------
def has_item(engine: Engine, user_id: str, item_id: str) -> bool:
    require_id(user_id, "user_id")
    require_id(item_id, "item_id")
    with get_session(engine) as session:
        return session.scalar(
            select(InventoryItem.id).where(
                InventoryItem.user_id == user_id, InventoryItem.item_id == item_id
            )
        ) is not None


def get_user_inventory(engine: Engine, user_id: str) -> list[InventoryItem]:
    """Owned items with catalog detail loaded, newest purchase first."""
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        return list(session.scalars(
            select(InventoryItem)
            .options(joinedload(InventoryItem.item))
            .where(InventoryItem.user_id == user_id)
            .order_by(InventoryItem.purchased_at.desc())
        ).all())


# ---------------------------------------------------------------------------
# Purchase
# ---------------------------------------------------------------------------
def purchase_item(engine: Engine, user_id: str, item_id: str) -> PurchaseResult:
    """Buy *item_id* for *user_id*.

    Checks run in order: :class:`ItemNotFound`, :class:`AlreadyOwned`,
    :class:`InsufficientCoins`.  Any failure leaves balance and inventory
    untouched.  The new row starts inactive.
    """
    require_id(user_id, "user_id")
    require_id(item_id, "item_id")

    with get_session(engine) as session:
        get_user(session, user_id)
        item = session.get(ShopItem, item_id)
        if item is None:
            raise ItemNotFound(item_id)
        if find_inventory_entry(session, user_id, item_id) is not None:
            raise AlreadyOwned(item_id)

        balance = debit_coins(session, user_id, item.price)
        entry = InventoryItem(user_id=user_id, item_id=item_id, is_active=False)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(entry)
                session.flush()
        except IntegrityError as exc:
            # Concurrent purchase won; the debit above rolls back with us
            raise AlreadyOwned(item_id) from exc
        entry.item = item

    logger.info(
        "User %s purchased %r for %d coins (balance=%d)",
        user_id, item.name, item.price, balance,
    )
    return PurchaseResult(new_balance=balance, inventory_item=entry)


# ---------------------------------------------------------------------------
# Activation
# ---------------------------------------------------------------------------
def activate_item(engine: Engine, user_id: str, item_id: str) -> InventoryItem:
    """Activate an owned item, deactivating the rest of its slot.

    Raises
    ------
    NotOwned
        If the member has no inventory row for *item_id*.
    """
    require_id(user_id, "user_id")
    require_id(item_id, "item_id")

    with get_session(engine) as session:
        user = lock_user(session, user_id)
        entry = find_inventory_entry(session, user_id, item_id)
        if entry is None:
            raise NotOwned(item_id)
        activate_owned_item(session, user, entry)

    logger.info("User %s activated %s item %s", user_id, entry.item.type, item_id)
    return entry
