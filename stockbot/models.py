from __future__ import annotations

from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Product(BaseModel):
    """Catalog item as presented to the user; stock None means unknown."""
    model_config = ConfigDict(frozen=True)

    name: str
    id: str
    price: Decimal = Decimal("0")
    stock: Optional[Decimal] = None


class CatalogResult(BaseModel):
    """Outcome of a catalog search: products on success, a user-facing error otherwise."""
    success: bool
    products: List[Product] = Field(default_factory=list)
    error: str = ""


class _TermIntent(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    term: str = Field(min_length=1)


class ConfirmSearch(_TermIntent):
    """Broad request; ask the user before searching."""
    action: Literal["confirm_search"]


class Search(_TermIntent):
    """Specific request; search right away."""
    action: Literal["search"]


class NewSearch(_TermIntent):
    """Request unrelated to the previous topic; search right away."""
    action: Literal["new_search"]


class UnknownIntent(BaseModel):
    """No product intent recognized."""
    model_config = ConfigDict(frozen=True)

    action: Literal["unknown"]


Intent = Annotated[
    Union[ConfirmSearch, Search, NewSearch, UnknownIntent],
    Field(discriminator="action"),
]
INTENT_ADAPTER: TypeAdapter = TypeAdapter(Intent)


class InboundMessage(BaseModel):
    """Message event delivered by the chat transport."""
    conversation_id: str
    body: str = ""
    timestamp_seconds: float
    is_group: bool = False
    is_status: bool = False
    is_broadcast_channel: bool = False
    sender_name: Optional[str] = None


class MessageResult(BaseModel):
    """Response payload for the inbound webhook."""
    conversation_id: str
    handled: bool
    reason: Optional[str] = None
    reply: Optional[str] = None


class ChatRequest(BaseModel):
    """Request payload for chat API."""
    session_id: Optional[str] = Field(default=None)
    message: str


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    answer_text: str
    session_id: str
    state: str


class SessionView(BaseModel):
    """Read-only summary of a conversation session."""
    conversation_id: str
    state: str
    pending_term: Optional[str] = None
    result_count: int
    history_depth: int
