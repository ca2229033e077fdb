from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Confirmer(Protocol):
    """Blocking yes/no prompt asked before any destructive remote delete."""

    def confirm(self, message: str) -> bool:
        ...


class StaticConfirmer:
    """Answers every prompt the same way; for hosts that decided up front."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer

    def confirm(self, message: str) -> bool:
        logger.debug("Confirm %r -> %s", message, self.answer)
        return self.answer
