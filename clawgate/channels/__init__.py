"""
Channel adapter interface
"""

from .base import ChannelAdapter, MessageHandler

__all__ = [
    "ChannelAdapter",
    "MessageHandler",
]
