"""
lorehub.api.routes.shop — Shop catalog, purchases & inventory
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lorehub.api.deps import get_current_user, get_engine
from lorehub.database.models import InventoryItem, ShopItem
from lorehub.engine.quests import as_utc
from lorehub.services import shop_service

router = APIRouter(prefix="/shop", tags=["shop"])


class PurchaseRequest(BaseModel):
    item_id: str


def _item_dict(item: ShopItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "type": item.type,
        "price": item.price,
        "image_url": item.image_url,
    }


def _inventory_dict(entry: InventoryItem) -> dict:
    return {
        "id": entry.id,
        "item_id": entry.item_id,
        "is_active": entry.is_active,
        "purchased_at": as_utc(entry.purchased_at).isoformat() if entry.purchased_at else None,
        "item": _item_dict(entry.item),
    }


@router.get("/items")
def list_items(engine=Depends(get_engine)):
    return {"items": [_item_dict(i) for i in shop_service.get_all_items(engine)]}


@router.post("/purchase", status_code=201)
def purchase(
    body: PurchaseRequest,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = shop_service.purchase_item(engine, user["sub"], body.item_id)
    return {
        "new_balance": result.new_balance,
        "inventory_item": _inventory_dict(result.inventory_item),
    }


@router.get("/inventory")
def inventory(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    entries = shop_service.get_user_inventory(engine, user["sub"])
    return {"inventory": [_inventory_dict(e) for e in entries]}


@router.post("/items/{item_id}/activate")
def activate(
    item_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    entry = shop_service.activate_item(engine, user["sub"], item_id)
    return {"inventory_item": _inventory_dict(entry)}
