"""Configuration schema and loader"""

from .loader import get_config_path, invalidate_config_cache, load_config
from .schema import (
    BotIdentity,
    ChannelConfig,
    ClawgateConfig,
    GroupModeConfig,
    GroupsConfig,
    PairingConfig,
)

__all__ = [
    "BotIdentity",
    "ChannelConfig",
    "ClawgateConfig",
    "GroupModeConfig",
    "GroupsConfig",
    "PairingConfig",
    "get_config_path",
    "invalidate_config_cache",
    "load_config",
]
