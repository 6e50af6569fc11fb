# backend/app/services/shopping_list_service.py
"""
Shopping List Service
Item CRUD with duplicate merging: adding an item whose name matches an
unpurchased item (case-insensitive) increases that item's quantity instead.
"""

from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.database import ShoppingListItem
from app.services import aggregation
from app.core.exceptions import NotFoundError, ServiceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "pieces"
DEFAULT_CATEGORY = "Other"
DEFAULT_SOURCE = "manual"


def _parse_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_item_update(data: Dict[str, Any]) -> List[str]:
    """Validation messages for a partial item update"""
    errors = []

    if "name" in data:
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            errors.append("Name is required and must be a non-empty string")

    if data.get("quantity") is not None:
        quantity = _parse_float(data["quantity"])
        if quantity is None or quantity <= 0:
            errors.append("Quantity must be a positive number")

    for field in ("unit", "category", "added_from"):
        if data.get(field) is not None and not isinstance(data[field], str):
            errors.append(f"{field.capitalize() if field != 'added_from' else field} must be a string")

    return errors


def serialize_item(item: ShoppingListItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit,
        "category": item.category,
        "is_purchased": item.is_purchased,
        "added_from": item.added_from,
        "estimated_cost": item.estimated_cost,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


class ShoppingListService:
    """Per-user shopping list"""

    def __init__(self, db: Session):
        self.db = db

    def list_items(self, user_id: int) -> List[Dict[str, Any]]:
        items = self.db.query(ShoppingListItem).filter(
            ShoppingListItem.user_id == user_id
        ).order_by(
            ShoppingListItem.is_purchased.asc(),
            ShoppingListItem.created_at.desc(),
            ShoppingListItem.id.desc()
        ).all()
        return [serialize_item(item) for item in items]

    def add_item(self, user_id: int, data: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Add one item, merging into an unpurchased item of the same name.

        Returns (item, merged).
        """
        try:
            item, merged = self._add_or_merge(user_id, data)
            self.db.commit()
            self.db.refresh(item)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adding item to shopping list: {str(e)}")
            raise ServiceError("Failed to add item") from e

        logger.info(f"Shopping list item {'merged' if merged else 'created'}: {item.name} (user {user_id})")
        return serialize_item(item), merged

    def bulk_add(self, user_id: int, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not items:
            raise ValidationError("Items must be a non-empty array")

        added = 0
        updated = 0
        errors: List[str] = []

        for index, data in enumerate(items, start=1):
            try:
                # Savepoint per item so a failure only undoes that item
                with self.db.begin_nested():
                    _, merged = self._add_or_merge(user_id, data)
                    self.db.flush()
            except ValidationError as e:
                errors.append(f"Item {index}: {e.message}")
                continue
            except SQLAlchemyError as e:
                logger.error(f"Error processing item {index}: {str(e)}")
                errors.append(f"Item {index}: {str(e)}")
                continue

            if merged:
                updated += 1
            else:
                added += 1

        if errors and not added and not updated:
            raise ValidationError("Failed to process any items", details=errors)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error bulk adding items: {str(e)}")
            raise ServiceError("Failed to add items") from e

        logger.info(f"Bulk add completed: {added} added, {updated} updated")
        result: Dict[str, Any] = {"added": added, "updated": updated, "total": added + updated}
        if errors:
            result["errors"] = errors
        return result

    def update_item(self, user_id: int, item_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        item = self._get_owned_item(user_id, item_id)

        errors = validate_item_update(data)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        try:
            if data.get("name") is not None:
                item.name = data["name"].strip()
            if data.get("quantity") is not None:
                item.quantity = float(data["quantity"])
            if data.get("unit") is not None:
                item.unit = data["unit"].strip()
            if data.get("category") is not None:
                item.category = data["category"].strip()
            if "estimated_cost" in data:
                item.estimated_cost = _parse_float(data["estimated_cost"]) if data["estimated_cost"] else None
            item.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(item)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating shopping list item: {str(e)}")
            raise ServiceError("Failed to update item") from e

        return serialize_item(item)

    def toggle_purchased(self, user_id: int, item_id: int) -> Dict[str, Any]:
        item = self._get_owned_item(user_id, item_id)
        try:
            item.is_purchased = not item.is_purchased
            item.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(item)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error toggling item status: {str(e)}")
            raise ServiceError("Failed to toggle item status") from e

        return serialize_item(item)

    def delete_item(self, user_id: int, item_id: int) -> None:
        item = self._get_owned_item(user_id, item_id)
        try:
            self.db.delete(item)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting shopping list item: {str(e)}")
            raise ServiceError("Failed to delete item") from e

    def clear_purchased(self, user_id: int) -> int:
        try:
            deleted = self.db.query(ShoppingListItem).filter(
                ShoppingListItem.user_id == user_id,
                ShoppingListItem.is_purchased.is_(True)
            ).delete(synchronize_session=False)
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error clearing purchased items: {str(e)}")
            raise ServiceError("Failed to clear purchased items") from e

        logger.info(f"Cleared {deleted} purchased items for user {user_id}")
        return deleted

    def get_stats(self, user_id: int) -> Dict[str, Any]:
        base = self.db.query(ShoppingListItem).filter(ShoppingListItem.user_id == user_id)
        total = base.count()
        purchased = base.filter(ShoppingListItem.is_purchased.is_(True)).count()

        categories = self.db.query(
            ShoppingListItem.category, func.count(ShoppingListItem.id)
        ).filter(
            ShoppingListItem.user_id == user_id
        ).group_by(ShoppingListItem.category).order_by(ShoppingListItem.category).all()

        total_cost = self.db.query(
            func.sum(ShoppingListItem.estimated_cost)
        ).filter(ShoppingListItem.user_id == user_id).scalar()

        return {
            "total_items": total,
            "purchased_items": purchased,
            "pending_items": total - purchased,
            "completion_rate": aggregation.round_half_up(purchased / total * 100) if total > 0 else 0,
            "categories": [{"name": name, "count": count} for name, count in categories],
            "estimated_total_cost": total_cost or 0,
        }

    # ===== HELPERS =====

    def _add_or_merge(self, user_id: int, data: Dict[str, Any]) -> Tuple[ShoppingListItem, bool]:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")
        name = name.strip()

        # Unparseable or zero quantities fall back to 1
        quantity = _parse_float(data.get("quantity", 1)) or 1
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        existing = self.db.query(ShoppingListItem).filter(
            ShoppingListItem.user_id == user_id,
            func.lower(ShoppingListItem.name) == name.lower(),
            ShoppingListItem.is_purchased.is_(False)
        ).first()

        if existing:
            existing.quantity = (existing.quantity or 0) + quantity
            existing.updated_at = datetime.utcnow()
            return existing, True

        estimated_cost = data.get("estimated_cost")
        item = ShoppingListItem(
            user_id=user_id,
            name=name,
            quantity=quantity,
            unit=(data.get("unit") or "").strip() or DEFAULT_UNIT,
            category=(data.get("category") or "").strip() or DEFAULT_CATEGORY,
            added_from=data.get("added_from") or DEFAULT_SOURCE,
            estimated_cost=_parse_float(estimated_cost) if estimated_cost else None,
            is_purchased=False
        )
        self.db.add(item)
        return item, False

    def _get_owned_item(self, user_id: int, item_id: int) -> ShoppingListItem:
        item = self.db.query(ShoppingListItem).filter(
            ShoppingListItem.id == item_id,
            ShoppingListItem.user_id == user_id
        ).first()
        if not item:
            raise NotFoundError("Item not found or access denied")
        return item
