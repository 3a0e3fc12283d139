"""
clawgate - inbound admission and batching for a multi-channel chat relay.

Decides which direct messages may reach the agent (allowlists and pairing)
and which group messages should trigger it (group modes, mention detection,
debounced batching).
"""

__version__ = "0.3.0"
