# helpdesk/schemas/categories.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: str | None = None
    color: str


class CategoriesOut(BaseModel):
    categories: list[CategoryOut]
