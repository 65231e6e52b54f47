"""
Interactive console for the workflow's confirmation gates.

All user-facing report lines (tag status, detections, export menu) and all
questions go through ``ConsolePrompter`` so the workflow can run unattended
with ``assume_yes`` and be driven by scripted answers in tests.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SEPARATOR_WIDTH = 30


class ConsolePrompter:
    """
    Console input/output used between workflow phases.

    Args:
        input_func: Function reading one line of user input
        assume_yes: Skip pauses and answer every yes/no question with its default
    """

    def __init__(self, input_func: Callable[[str], str] = input, assume_yes: bool = False):
        self.input_func = input_func
        self.assume_yes = assume_yes

    def write(self, message: str = "") -> None:
        print(message)

    def separator(self) -> None:
        self.write("-" * SEPARATOR_WIDTH)

    def pause(self, message: str = "Press Enter to continue...") -> None:
        """Block until the user acknowledges the finished phase."""
        if self.assume_yes:
            logger.debug(f"Auto-continue: {message}")
            return
        self.input_func(f"{message} ")

    def ask(self, prompt: str) -> str:
        """Read one free-form answer, stripped."""
        return self.input_func(f"{prompt} ").strip()

    def confirm(self, question: str, default: bool = False) -> bool:
        """
        Ask a yes/no question.

        Empty answers take ``default``; anything other than y/yes/n/no is
        asked again.
        """
        if self.assume_yes:
            logger.info(f"{question} -> {'yes' if default else 'no'} (non-interactive)")
            return default

        suffix = "(Y/n)" if default else "(y/N)"
        while True:
            answer = self.input_func(f"{question} {suffix} ").strip().lower()
            if not answer:
                return default
            if answer in ('y', 'yes'):
                return True
            if answer in ('n', 'no'):
                return False
            self.write("\tPlease answer Y or N.")

    def choose(self, prompt: str) -> Optional[str]:
        """Read a menu choice; None in non-interactive mode."""
        if self.assume_yes:
            return None
        return self.ask(prompt)
