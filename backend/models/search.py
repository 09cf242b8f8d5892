"""
Proximity Search Models
Candidates come from the organization/donor directory; matches are what a
single search stage hands back. Neither is persisted.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Union, Literal, Annotated
from datetime import datetime, timezone
from .enums import BloodGroup, SearchSource, SearchMode, SearchState, DistanceCategory
from .geo import GeoPoint
from .stock import StockLevel


class BloodBankCandidate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    name: str
    location: Optional[GeoPoint] = None
    city: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    # Keyed by blood group value ("A+", "O-", ...)
    stock: Dict[str, StockLevel] = Field(default_factory=dict)

    def units_of(self, blood_group: BloodGroup) -> int:
        level = self.stock.get(blood_group.value)
        return level.units if level else 0


class DonorCandidate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    name: str
    blood_group: BloodGroup
    location: Optional[GeoPoint] = None
    city: Optional[str] = None
    contact: Optional[str] = None


class BloodBankMatch(BaseModel):
    kind: Literal["bloodbank"] = "bloodbank"
    id: str
    name: str
    city: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    location: Optional[GeoPoint] = None
    distance_km: Optional[float] = None
    distance_category: Optional[DistanceCategory] = None
    units_available: int
    last_stock_update: Optional[datetime] = None


class DonorMatch(BaseModel):
    kind: Literal["donor"] = "donor"
    id: str
    name: str
    blood_group: BloodGroup
    city: Optional[str] = None
    contact: Optional[str] = None
    location: Optional[GeoPoint] = None
    distance_km: Optional[float] = None
    distance_category: Optional[DistanceCategory] = None


SearchMatch = Annotated[Union[BloodBankMatch, DonorMatch], Field(discriminator="kind")]


class SearchStage(BaseModel):
    model_config = ConfigDict(frozen=True)
    index: int
    state: SearchState
    source: Optional[SearchSource] = None
    radius_km: Optional[float] = None


class StageTransition(BaseModel):
    from_stage: SearchStage
    to_stage: SearchStage
    reason: str
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SearchResult(BaseModel):
    source: SearchSource
    mode: SearchMode
    stage: SearchStage
    radius_used: Optional[float] = None
    matches: List[SearchMatch] = Field(default_factory=list)
    next_stage: Optional[SearchStage] = None
    exhausted: bool = False
    # Every stage change made during the call, oldest first
    transitions: List[StageTransition] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.matches)


class BloodSearchRequest(BaseModel):
    blood_group: BloodGroup
    min_units: int = Field(default=1, ge=1)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    # Index of the stage to run, taken from a previous response's next_stage
    stage: Optional[int] = Field(default=None, ge=0)
