from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from .enums import BloodGroup

class StockSnapshot(BaseModel):
    """Units of one blood group held by one organization."""
    model_config = ConfigDict(extra="ignore")
    organization_id: str
    blood_group: BloodGroup
    units: int = Field(default=0, ge=0)
    last_updated: Optional[datetime] = None

class StockLevel(BaseModel):
    model_config = ConfigDict(extra="ignore")
    units: int = Field(default=0, ge=0)
    last_updated: Optional[datetime] = None
