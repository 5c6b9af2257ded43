# roulette/models/dto.py
# Data models for the discovery-to-selection pipeline

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from roulette.core.config import settings

MIN_PRICE_LEVEL = 1
MAX_PRICE_LEVEL = 4

# --- User Settings ---

class PriceRange(BaseModel):
    """Inclusive price-level bounds, stored externally as the string "min,max"."""
    model_config = ConfigDict(frozen=True)

    min_price: int = Field(..., ge=MIN_PRICE_LEVEL, le=MAX_PRICE_LEVEL)
    max_price: int = Field(..., ge=MIN_PRICE_LEVEL, le=MAX_PRICE_LEVEL)

    @model_validator(mode="after")
    def _check_order(self):
        if self.min_price > self.max_price:
            raise ValueError(f"min_price {self.min_price} exceeds max_price {self.max_price}")
        return self

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["PriceRange"]:
        """Parse "min,max". An empty or missing value means no price filter."""
        if raw is None or not raw.strip():
            return None
        parts = [p.strip() for p in raw.split(",")]
        if len(parts) != 2:
            raise ValueError(f"price range must look like 'min,max', got {raw!r}")
        return cls(min_price=int(parts[0]), max_price=int(parts[1]))

    def contains(self, level: int) -> bool:
        return self.min_price <= level <= self.max_price

    def __str__(self) -> str:
        return f"{self.min_price},{self.max_price}"


class SearchSettings(BaseModel):
    """User-tunable search settings, persisted across sessions."""
    search_radius_miles: float = Field(
        settings.DEFAULT_SEARCH_RADIUS_MILES, gt=0, allow_inf_nan=False, description="Search radius in miles."
    )
    price_range: Optional[PriceRange] = Field(
        default_factory=lambda: PriceRange.parse(settings.DEFAULT_PRICE_RANGE),
        description="Inclusive price-level filter; None disables filtering.",
    )
    # Accepted and stored, not applied to any filter yet
    dietary_filter: str = Field(settings.DEFAULT_DIETARY_FILTER, description="Reserved for dietary filtering.")

    @field_validator("price_range", mode="before")
    @classmethod
    def _parse_price_range(cls, value):
        if isinstance(value, str):
            return PriceRange.parse(value)
        return value

# --- Query ---

class LocationQuery(BaseModel):
    """A coordinate plus the search radius in meters."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_meters: float = Field(..., description="search_radius_miles * 1609.34")

# --- Raw geodata ---

class Coordinates(BaseModel):
    lat: float
    lon: float


class RawRecord(BaseModel):
    """One element of the Overpass `elements` array."""
    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., description="node, way or relation")
    id: int
    tags: Dict[str, str] = Field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    center: Optional[Coordinates] = Field(None, description="Centroid for ways and relations.")

    @field_validator("tags", mode="before")
    @classmethod
    def _stringify_tags(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        return {str(k): str(v) for k, v in value.items()}

# --- Candidates & wheel ---

class Candidate(BaseModel):
    """A normalized restaurant ready for filtering and display."""
    name: str = Field(..., min_length=1)
    distance_miles: str = Field(..., description="Search radius used, one decimal place.")
    price_level: int = Field(..., ge=MIN_PRICE_LEVEL, le=MAX_PRICE_LEVEL)
    latitude: float
    longitude: float
    external_id: int
    external_kind: str
    external_record_url: str
    map_view_url: str

    @property
    def price_sign(self) -> str:
        return "$" * self.price_level


class WheelOption(BaseModel):
    """The slice of a candidate shown on the wheel."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    map_view_url: str


class WheelState(BaseModel):
    options: List[WheelOption] = Field(default_factory=list)

    @field_validator("options")
    @classmethod
    def _bounded(cls, value):
        if len(value) > settings.WHEEL_SIZE:
            raise ValueError(f"a wheel holds at most {settings.WHEEL_SIZE} options, got {len(value)}")
        return value

    def __len__(self) -> int:
        return len(self.options)

    @property
    def is_empty(self) -> bool:
        return not self.options

# --- History ---

class HistoryEntry(Candidate):
    """A past winner: the candidate snapshot plus when it was picked."""
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp.")

    def snapshot(self) -> Candidate:
        return Candidate.model_validate(self.model_dump(exclude={"timestamp"}))

# --- Pipeline output ---

class WheelResult(BaseModel):
    """Outcome of one fetch-and-build run."""
    wheel: WheelState
    candidates: List[Candidate]
    generation: int

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error payload shown to the user."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")
