"""Interactive operator prompts."""

import logging
from typing import List, Optional, Protocol, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .exceptions import PromptCancelledError
from .parsers import normalize_address

logger = logging.getLogger(__name__)


class Prompter(Protocol):
    """Questions the installer asks the operator."""

    def confirm(self, message: str, default: bool = False) -> bool: ...

    def select(self, message: str, options: Sequence[str]) -> str: ...

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]: ...

    def address(self, message: str) -> Optional[str]: ...


class ConsolePrompter:
    """Prompter reading answers from the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console if console is not None else Console()

    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask a yes/no question.

        Raises:
            PromptCancelledError: If the operator aborts with Ctrl-C or EOF
        """
        try:
            return Confirm.ask(escape(message), default=default, console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptCancelledError("Prompt cancelled") from e

    def select(self, message: str, options: Sequence[str]) -> str:
        """
        Ask the operator to pick one option by number.

        Args:
            message: Question to show
            options: Choices, shown numbered from 1

        Returns:
            The chosen option

        Raises:
            PromptCancelledError: If the operator aborts with Ctrl-C or EOF
        """
        self.console.print(escape(message))
        for i, option in enumerate(options, start=1):
            self.console.print(f"  {i}. {escape(option)}")

        choices = [str(i) for i in range(1, len(options) + 1)]
        try:
            answer = Prompt.ask("Select", choices=choices, console=self.console, show_choices=False)
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptCancelledError("Prompt cancelled") from e
        return options[int(answer) - 1]

    def multi_select(self, message: str, options: Sequence[str]) -> List[str]:
        """
        Ask the operator to pick any number of options.

        Answers are comma-separated numbers; an empty answer selects nothing.

        Raises:
            PromptCancelledError: If the operator aborts with Ctrl-C or EOF
        """
        self.console.print(escape(message))
        for i, option in enumerate(options, start=1):
            self.console.print(f"  {i}. {escape(option)}")

        while True:
            try:
                answer = Prompt.ask("Select (comma-separated)", default="", console=self.console)
            except (KeyboardInterrupt, EOFError) as e:
                raise PromptCancelledError("Prompt cancelled") from e

            picked = [part.strip() for part in answer.split(",") if part.strip()]
            if all(part.isdigit() and 1 <= int(part) <= len(options) for part in picked):
                # Keep option order, drop duplicates
                indexes = sorted({int(part) - 1 for part in picked})
                return [options[i] for i in indexes]
            self.console.print("[red]Please enter numbers from the list[/red]")

    def address(self, message: str) -> Optional[str]:
        """
        Ask for an account address.

        Returns:
            Canonical address, or None when the answer is left empty

        Raises:
            PromptCancelledError: If the operator aborts with Ctrl-C or EOF
        """
        while True:
            try:
                answer = Prompt.ask(escape(message), default="", console=self.console)
            except (KeyboardInterrupt, EOFError) as e:
                raise PromptCancelledError("Prompt cancelled") from e

            if not answer.strip():
                return None
            try:
                return normalize_address(answer)
            except ValueError:
                self.console.print("[red]Invalid address, expected up to 16 hex characters[/red]")
