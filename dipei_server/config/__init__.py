from .settings import settings, Settings, DevelopmentSettings, get_settings

__all__ = ["settings", "Settings", "DevelopmentSettings", "get_settings"]
