"""Automation rules: trigger types and the trigger engine."""

from .models import (
    ActionType,
    AutomationStatus,
    ScheduledAutomation,
    TriggerRule,
    TriggerType,
)
from .trigger import AutomationStore, AutomationTriggerEngine, TriggerResult

__all__ = [
    "ActionType",
    "AutomationStatus",
    "AutomationStore",
    "AutomationTriggerEngine",
    "ScheduledAutomation",
    "TriggerResult",
    "TriggerRule",
    "TriggerType",
]
