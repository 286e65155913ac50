from __future__ import annotations

from fastapi import APIRouter, Request

from loopjam.schemas.relay import RelayStatusOut

router = APIRouter()


@router.get("", response_model=RelayStatusOut)
async def relay_status(request: Request) -> RelayStatusOut:
    hub = request.app.state.relay_hub
    return RelayStatusOut(
        peer_count=len(hub),
        delivered=hub.delivered,
        dropped=hub.dropped,
    )
