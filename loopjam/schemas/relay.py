from pydantic import BaseModel


class RelayStatusOut(BaseModel):
    peer_count: int
    delivered: int
    dropped: int
