from loopjam.core.config import settings

__all__ = ["settings"]
