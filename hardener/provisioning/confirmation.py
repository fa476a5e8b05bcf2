"""Operator confirmation providers.

The workflow stops twice for a yes/no decision: before replacing an existing
instance profile association and before rebooting. Both go through a
ConfirmationProvider so runs without a terminal get a fixed answer.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import typer

logger = logging.getLogger(__name__)

AFFIRMATIVE_ANSWERS = {"y", "yes"}


def is_affirmative(answer: Optional[str]) -> bool:
    """Only an explicit y/yes counts as consent. Anything else is no."""
    if answer is None:
        return False
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS


class ConfirmationProvider(ABC):
    """Answers yes/no questions on behalf of the operator."""

    @abstractmethod
    def confirm(self, question: str) -> bool:
        """Return True only on explicit consent."""


class AutomatedConfirmation(ConfirmationProvider):
    """Fixed answer for non-interactive runs. Denies by default."""

    def __init__(self, allow: bool = False):
        self.allow = allow

    def confirm(self, question: str) -> bool:
        answer = "yes" if self.allow else "no"
        logger.info(f"{question} (y/n): {answer} [non-interactive]")
        return self.allow


class InteractiveConfirmation(ConfirmationProvider):
    """Prompts on the terminal.

    Args:
        prompt: Callable returning the raw answer for a question. Defaults to
            typer.prompt with an empty default so a bare Enter means no.
    """

    def __init__(self, prompt: Optional[Callable[[str], str]] = None):
        self._prompt = prompt or self._typer_prompt

    @staticmethod
    def _typer_prompt(question: str) -> str:
        answer: str = typer.prompt(f"{question} (y/n)", default="", show_default=False)
        return answer

    def confirm(self, question: str) -> bool:
        try:
            answer = self._prompt(question)
        except (EOFError, typer.Abort):
            logger.info("No answer received, treating as no")
            return False
        return is_affirmative(answer)
