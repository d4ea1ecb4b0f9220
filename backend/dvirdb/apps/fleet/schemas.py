from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class VehicleRead(BaseModel):
    id: str
    unit_number: str
    name: Optional[str] = None
    vin: Optional[str] = None
    seating_capacity: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
