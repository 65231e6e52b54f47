"""
Interactive console used for phase confirmations and menu selection.
"""

from .prompts import ConsolePrompter

__all__ = ["ConsolePrompter"]
