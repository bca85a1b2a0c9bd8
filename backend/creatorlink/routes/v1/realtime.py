# backend/creatorlink/routes/v1/realtime.py
"""
Realtime routes - API v1

    WS  /realtime            -> Authenticated event socket (see RealtimeGateway)
    GET /realtime/presence   -> Identities currently holding a live connection
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, WebSocket
from pydantic import BaseModel

from ...api.dependencies.auth import get_current_identity
from ...api.dependencies.services import get_gateway, get_registry
from ...services.directory_service import IdentityRecord
from ...services.messaging.gateway import RealtimeGateway
from ...services.messaging.registry import ConnectionRegistry

router = APIRouter(tags=["realtime-v1"])


class PresenceItem(BaseModel):
    identity_id: str
    display_info: Dict[str, Any]
    connected_at: str
    status: Optional[str] = None


class PresenceResponse(BaseModel):
    online: List[PresenceItem]
    count: int


@router.websocket("")
async def realtime_socket(
    websocket: WebSocket,
    gateway: RealtimeGateway = Depends(get_gateway),
) -> None:
    await gateway.handle(websocket)


@router.get("/presence", response_model=PresenceResponse)
def list_presence(
    current_identity: IdentityRecord = Depends(get_current_identity),
    registry: ConnectionRegistry = Depends(get_registry),
) -> PresenceResponse:
    """List connected identities with their display info and status labels."""
    entries = [PresenceItem(**entry.to_dict()) for entry in registry.list_all()]
    return PresenceResponse(online=entries, count=len(entries))
