from . import dashboard, settings

__all__ = ["dashboard", "settings"]
