# backend/app/api/shopping_lists.py
"""
Shopping List API Router
Static paths (/bulk-add, /stats, /purchased) are declared before /{item_id}
so they are never captured as an item id.
"""

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.models.database import get_db, User
from app.services.auth import get_current_user_dependency as get_current_user
from app.services.shopping_list_service import ShoppingListService
from app.schemas.shopping_list import ShoppingItemCreate, ShoppingItemUpdate, BulkAddRequest
from app.core.exceptions import NutritionTrackerError, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shopping-lists", tags=["Shopping List"])


@router.get("")
def list_items(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    items = ShoppingListService(db).list_items(current_user.id)
    return {"success": True, "data": items}


@router.post("", status_code=status.HTTP_201_CREATED)
def add_item(
    request: ShoppingItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        item, merged = ShoppingListService(db).add_item(current_user.id, request.model_dump())
    except NutritionTrackerError as e:
        raise_http_error(e)

    message = "Item quantity updated" if merged else "Item added to shopping list"
    return {"success": True, "data": item, "merged": merged, "message": message}


@router.post("/bulk-add", status_code=status.HTTP_201_CREATED)
def bulk_add(
    request: BulkAddRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    items = [item.model_dump() for item in request.items or []]
    try:
        result = ShoppingListService(db).bulk_add(current_user.id, items)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {
        "success": True,
        "data": result,
        "message": f"Processed {result['total']} items ({result['added']} added, {result['updated']} updated)"
    }


@router.get("/stats")
def get_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"success": True, "data": ShoppingListService(db).get_stats(current_user.id)}


@router.delete("/purchased")
def clear_purchased(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        deleted = ShoppingListService(db).clear_purchased(current_user.id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": {"deleted": deleted}, "message": f"Cleared {deleted} purchased items"}


@router.put("/{item_id}")
def update_item(
    item_id: int,
    request: ShoppingItemUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        item = ShoppingListService(db).update_item(
            current_user.id, item_id, request.model_dump(exclude_unset=True)
        )
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": item, "message": "Item updated successfully"}


@router.put("/{item_id}/toggle")
def toggle_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        item = ShoppingListService(db).toggle_purchased(current_user.id, item_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "data": item}


@router.delete("/{item_id}")
def delete_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        ShoppingListService(db).delete_item(current_user.id, item_id)
    except NutritionTrackerError as e:
        raise_http_error(e)

    return {"success": True, "message": "Item deleted successfully"}
