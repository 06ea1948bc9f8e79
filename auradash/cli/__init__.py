from .sync_tools import app

__all__ = ["app"]
