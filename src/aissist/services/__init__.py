"""Settings persistence and request configuration."""

from .request_config import EffectiveConfig, FieldSpec, resolve_request_config
from .settings import SecretVault, Settings, SettingsStore

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "EffectiveConfig",
    "FieldSpec",
    "resolve_request_config",
]
