# backend/creatorlink/schemas/message.py
"""
Pydantic schemas for messages.

Responses carry the kind-specific data as a tagged payload, so an offer
block can only appear on an offer message and a system kind only on a
system message.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from ..core.enums import DeliveryStatus, MessageKind, SystemMessageKind
from ..core.timezone_utils import ensure_utc
from ..models.message import Message
from ._strict_base import StrictRequestModel


class TextPayload(BaseModel):
    kind: Literal["text"] = "text"


class OfferPayload(BaseModel):
    kind: Literal["offer"] = "offer"
    amount: Decimal
    currency: str = "USD"
    description: Optional[str] = None
    deadline: Optional[datetime] = None


class SystemPayload(BaseModel):
    kind: Literal["system"] = "system"
    system_kind: SystemMessageKind


MessagePayload = Annotated[
    Union[TextPayload, OfferPayload, SystemPayload], Field(discriminator="kind")
]


class ReadReceiptEntry(BaseModel):
    """Read receipt entry showing who read and when."""

    reader_id: str
    read_at: datetime


class MessageResponse(BaseModel):
    """Single message in a conversation."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    kind: MessageKind
    payload: MessagePayload
    delivery_status: DeliveryStatus
    sequence: int
    created_at: datetime
    read_by: List[ReadReceiptEntry] = Field(default_factory=list)


class OfferDetailsRequest(StrictRequestModel):
    amount: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=2000)
    deadline: Optional[datetime] = None


class SendMessageRequest(StrictRequestModel):
    """Request to send a message; content length is enforced by the service."""

    content: str = ""
    kind: MessageKind = MessageKind.TEXT
    offer: Optional[OfferDetailsRequest] = None


class PaginationMeta(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool


class MessagesResponse(BaseModel):
    """Response for GET /conversations/{id}/messages."""

    messages: List[MessageResponse]
    pagination: PaginationMeta
    unread_count: int = 0


class MarkReadResponse(BaseModel):
    message_id: str
    read_by: str
    read_at: datetime
    newly_read: bool


class MarkAllReadResponse(BaseModel):
    conversation_id: str
    marked_count: int
    message_ids: List[str] = Field(default_factory=list)


def build_pagination(page: int, page_size: int, total: int) -> PaginationMeta:
    total_pages = (total + page_size - 1) // page_size if page_size > 0 else 0
    return PaginationMeta(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=page_size,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def _payload_for(message: Message) -> Union[TextPayload, OfferPayload, SystemPayload]:
    kind = MessageKind(message.kind)
    if kind == MessageKind.OFFER:
        return OfferPayload(
            amount=message.offer_amount if message.offer_amount is not None else Decimal("0"),
            currency=message.offer_currency or "USD",
            description=message.offer_description,
            deadline=ensure_utc(message.offer_deadline),
        )
    if kind == MessageKind.SYSTEM:
        return SystemPayload(system_kind=SystemMessageKind(message.system_kind))
    return TextPayload()


def serialize_message(
    message: Message, receipts: Optional[Sequence[Tuple[str, datetime]]] = None
) -> MessageResponse:
    """Build the wire shape of a message from column data only."""
    return MessageResponse(
        id=str(message.id),
        conversation_id=str(message.conversation_id),
        sender_id=str(message.sender_id),
        content=message.content,
        kind=MessageKind(message.kind),
        payload=_payload_for(message),
        delivery_status=DeliveryStatus(message.delivery_status),
        sequence=int(message.sequence),
        created_at=ensure_utc(message.created_at),
        read_by=[
            ReadReceiptEntry(reader_id=reader_id, read_at=ensure_utc(read_at))
            for reader_id, read_at in (receipts or [])
        ],
    )


def serialize_messages(
    messages: Sequence[Message], receipts: Dict[str, List[Tuple[str, datetime]]]
) -> List[MessageResponse]:
    return [serialize_message(message, receipts.get(str(message.id))) for message in messages]
