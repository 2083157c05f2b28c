"""UI package: event bus, prompts, the tab lifecycle controller and Qt views."""

from .events import EventBus
from .prompts import ConfirmChoice, ConfirmationPrompt, LinkDetails
from .tab_controller import CloseOutcome, SaveOutcome, TabLifecycleController

__all__ = [
    "EventBus",
    "ConfirmChoice",
    "ConfirmationPrompt",
    "LinkDetails",
    "CloseOutcome",
    "SaveOutcome",
    "TabLifecycleController",
]
