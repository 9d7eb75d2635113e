"""
Event models and schemas
"""
from datetime import datetime
from typing import Annotated, Optional, List, Union, Literal
from pydantic import BaseModel, Field, field_validator


def _parse_timestamp(v):
    if isinstance(v, str):
        return datetime.fromisoformat(v.replace("Z", "+00:00"))
    return v


class TransitEvent(BaseModel):
    """A validated ticket passing through a turnstile"""

    event_type: Literal["transit"] = "transit"
    username: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    zone: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        """Parse timestamp from string or datetime"""
        return _parse_timestamp(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "event_type": "transit",
                "username": "customer1",
                "timestamp": "2022-07-01T08:15:00Z",
                "zone": "A",
            }
        }
    }


class PurchaseEvent(BaseModel):
    """A completed ticket order"""

    event_type: Literal["purchase"] = "purchase"
    username: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    quantity: int = Field(..., ge=1, description="Number of tickets bought")
    amount: float = Field(..., ge=0, description="Total price paid")

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        """Parse timestamp from string or datetime"""
        return _parse_timestamp(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "event_type": "purchase",
                "username": "customer1",
                "timestamp": "2022-07-01T08:00:00Z",
                "quantity": 2,
                "amount": 12.40,
            }
        }
    }


Event = Union[TransitEvent, PurchaseEvent]


class BatchEventRequest(BaseModel):
    """Batch event submission"""

    events: List[Annotated[Union[TransitEvent, PurchaseEvent], Field(discriminator="event_type")]] = Field(
        ..., max_length=1000
    )


class EventResponse(BaseModel):
    """Event submission response"""

    success: bool
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
