"""
Inbound admission: DM access control, group gating, mention detection
and group batching.
"""

from .access_control import AccessController, AccessDecision, GroupJoinDecision
from .batching_config import GroupBatchingConfig, collect_group_batching_config, resolve_debounce_ms
from .debounce import GroupBatcher
from .group_gating import GatingResult, GroupGatingEngine
from .mentions import (
    MentionConfig,
    MentionDetector,
    MentionResult,
    MentionStrategy,
    get_mention_strategy,
)
from .pipeline import AdmissionOutcome, InboundPipeline
from .scheduler import AsyncioScheduler, Scheduler, VirtualScheduler

__all__ = [
    "AccessController",
    "AccessDecision",
    "AdmissionOutcome",
    "AsyncioScheduler",
    "GatingResult",
    "GroupBatcher",
    "GroupBatchingConfig",
    "GroupGatingEngine",
    "GroupJoinDecision",
    "InboundPipeline",
    "MentionConfig",
    "MentionDetector",
    "MentionResult",
    "MentionStrategy",
    "Scheduler",
    "VirtualScheduler",
    "collect_group_batching_config",
    "get_mention_strategy",
    "resolve_debounce_ms",
]
