"""
Pydantic Schemas for Request/Response Validation

Request bodies are deliberately loose (``Any``): the services layer
coerces and bounds untrusted values itself, so a bad price or a missing
name drops or clamps an item instead of rejecting the whole request.

JSON field names are camelCase on the wire.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orderdesk.models import OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderSubmission(CamelModel):
    """Customer order as posted by the menu page."""
    customer_name: Any = Field(None, examples=["Nid"])
    table_no: Any = Field(None, examples=["T3"])
    note: Any = Field(None, examples=["no chili"])
    items: Any = Field(
        None,
        examples=[[{"name": "Pad Thai", "price": 60, "qty": 2, "image": ""}]],
    )


class LoginRequest(CamelModel):
    username: Any = Field(None, examples=["admin"])
    password: Any = Field(None, examples=["admin123"])


class StatusUpdateRequest(CamelModel):
    status: Any = Field(None, examples=["preparing"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemView(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: int
    qty: int
    image: str = ""


class OrderView(CamelModel):
    """An order with its items in insertion order."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_name: str
    table_no: str
    note: str
    status: OrderStatus
    total: int
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemView]

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict, as sent on the event stream."""
        return self.model_dump(mode="json", by_alias=True)


class OrderCreateResponse(CamelModel):
    message: str
    order_id: int
    total: int


class OrderListResponse(CamelModel):
    orders: List[OrderView]


class StatusUpdateResponse(CamelModel):
    message: str
    order: OrderView


class AdminInfo(CamelModel):
    id: int
    username: str


class LoginResponse(CamelModel):
    message: str
    token: str
    admin: AdminInfo
    expires_in_ms: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool
    now: int
