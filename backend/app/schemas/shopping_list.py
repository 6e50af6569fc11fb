# backend/app/schemas/shopping_list.py
"""
Pydantic schemas for the Shopping List API.
Bodies are permissive on purpose: quantity fallbacks and name checks are
business rules of the service and are reported as 400 with details.
"""

from pydantic import BaseModel, Field
from typing import Any, List, Optional


class ShoppingItemCreate(BaseModel):
    name: Optional[Any] = None
    quantity: Optional[Any] = Field(None, description="Parsed as a number; missing or zero means 1")
    unit: Optional[str] = None
    category: Optional[str] = None
    added_from: Optional[str] = Field(None, description="manual, menu, meal")
    estimated_cost: Optional[float] = Field(None, ge=0)


class ShoppingItemUpdate(BaseModel):
    name: Optional[Any] = None
    quantity: Optional[Any] = None
    unit: Optional[Any] = None
    category: Optional[Any] = None
    estimated_cost: Optional[float] = Field(None, ge=0)


class BulkAddRequest(BaseModel):
    items: Optional[List[ShoppingItemCreate]] = None
