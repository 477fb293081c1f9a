from typing import Optional
from fastapi import APIRouter, Depends, Query, WebSocket, status
from loguru import logger

from app.core.dependencies import get_hub, get_token_service
from app.realtime.hub import Hub
from app.services.auth import TokenService

router = APIRouter()


@router.websocket("/ws")
async def live_updates(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    hub: Hub = Depends(get_hub),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Live notification channel. Browsers cannot set headers on a WebSocket
    handshake, so the access token travels in the `token` query parameter.
    """
    actor = tokens.verify_access_token(token) if token else None
    if actor is None:
        logger.warning("WebSocket handshake rejected: invalid or missing token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if not hub.is_running:
        logger.error("WebSocket handshake rejected: connection hub is not running")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    await hub.serve(websocket, actor.user_id, actor.role, actor.supplier_id)
