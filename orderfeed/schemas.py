# orderfeed/schemas.py
from typing import Any, Optional

from pydantic import BaseModel


class Order(BaseModel):
    id: str
    item: str
    amount: float

    def is_valid(self) -> bool:
        return bool(self.id) and bool(self.item) and self.amount > 0


class SendResult(BaseModel):
    """Outcome of one publish request; failures are values, not exceptions."""
    success: bool
    data: Optional[Any] = None
    error: Optional[Any] = None
