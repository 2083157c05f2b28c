"""Confirmation and link-details prompt contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

__all__ = ["ConfirmChoice", "ConfirmationPrompt", "LinkDetails", "normalize_link_details"]


class ConfirmChoice(Enum):
    YES = "yes"
    NO = "no"
    YES_TO_ALL = "all"
    CANCEL = "cancel"


@dataclass(slots=True, frozen=True)
class LinkDetails:
    text: str
    url: str


class ConfirmationPrompt(Protocol):
    """Modal prompts awaited by the controller, one at a time."""

    async def ask_confirm(
        self,
        message: str,
        *,
        allow_yes_to_all: bool = False,
        allow_cancel: bool = True,
    ) -> ConfirmChoice:  # pragma: no cover - protocol
        ...

    async def ask_link_details(
        self, default_text: str = "", default_url: str = ""
    ) -> LinkDetails | None:  # pragma: no cover - protocol
        ...


def normalize_link_details(text: str, url: str, *, default_url: str = "") -> LinkDetails | None:
    """Trim raw dialog input; an empty URL with no default counts as cancelled."""

    url = url.strip()
    if not url and not default_url:
        return None
    return LinkDetails(text=text.strip(), url=url)
