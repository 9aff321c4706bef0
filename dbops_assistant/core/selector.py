"""
Operator selection and confirmation.

Business logic asks a :class:`Selector` instead of reading the terminal.
:class:`AutoConfirmSelector` answers deterministically so ``--yes`` runs
never block on input; the Rich console implementation lives in the CLI.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence


class Selector(ABC):
    """Chooses among labelled candidates and confirms actions."""

    @abstractmethod
    def select_one(self, prompt: str, options: Sequence[str]) -> int:
        """Return the index of one chosen option."""
        pass

    @abstractmethod
    def select_many(self, prompt: str, options: Sequence[str]) -> List[int]:
        """Return the indices of the chosen options, in list order."""
        pass

    @abstractmethod
    def confirm(self, prompt: str, default: bool = False) -> bool:
        pass


class AutoConfirmSelector(Selector):
    """Non-interactive selector.

    ``select_one`` picks the first listed option, ``select_many`` picks
    every option and ``confirm`` always agrees.
    """

    def select_one(self, prompt: str, options: Sequence[str]) -> int:
        if not options:
            raise ValueError("Nothing to select from")
        return 0

    def select_many(self, prompt: str, options: Sequence[str]) -> List[int]:
        return list(range(len(options)))

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return True
