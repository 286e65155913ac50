from fastapi import APIRouter
from loopjam.api.v1 import relay, ws_relay

router = APIRouter()
router.include_router(relay.router, prefix="/relay", tags=["relay"])
router.include_router(ws_relay.router, tags=["relay-ws"])
