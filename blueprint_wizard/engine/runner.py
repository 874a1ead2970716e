"""ActionRunner interface - all side effects go here.

The engine never talks to the terminal, a browser, an AI backend or the
filesystem directly. Each suspension point of a flow is one call on the
injected runner.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Confirm, Prompt

from .errors import UserAbortedError

logger = logging.getLogger(__name__)

NO_AI_BACKEND_ADVICE = (
    "No AI backend is configured. Paste the prompt saved in the contextifact "
    "file into your assistant of choice."
)


class ActionRunner(ABC):
    """Interface for the step I/O and filesystem collaborators."""

    @abstractmethod
    def display(self, message: str, markdown: bool = False) -> None:
        """Display a message to the user.

        Args:
            message: Text to display (may contain newlines)
            markdown: Render as markdown where the UI supports it
        """
        pass

    @abstractmethod
    def acquire_text(self, prompt: str, validation_pattern: Optional[str] = None, sensitive: bool = False) -> str:
        """Get a line of text from the user.

        Args:
            prompt: Question to ask the user
            validation_pattern: Pattern the answer will be checked against (for hints)
            sensitive: Hide the typed value

        Raises:
            UserAbortedError: If the user cancels
        """
        pass

    @abstractmethod
    def present_choice(self, prompt: str, options: List[str]) -> str:
        """Ask the user to pick one of the options and return the selection."""
        pass

    @abstractmethod
    def acknowledge_navigation(self, url: str, instructions: List[str]) -> bool:
        """Show a URL and instructions; return True once the user is done there."""
        pass

    @abstractmethod
    def generate_ai_response(self, rendered_prompt: str) -> str:
        """Send a fully rendered prompt to the AI collaborator and return its text."""
        pass

    @abstractmethod
    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question."""
        pass

    @abstractmethod
    def write_file(self, path: str, content: str, private: bool = False) -> None:
        """Write content to a file, all or nothing.

        Args:
            path: Path to file to write
            content: Content to write to file
            private: Restrict permissions to the owner
        """
        pass


def atomic_write(path: str, content: str, private: bool = False) -> None:
    """Stage content in a temp file next to `path`, then rename it into place."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if private:
            os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class RealActionRunner(ActionRunner):
    """Terminal implementation built on rich."""

    def __init__(
        self,
        console: Optional[Console] = None,
        open_browser: bool = False,
        ai_backend: Optional[Callable[[str], str]] = None,
        verbose: bool = False,
    ):
        """Initialize the runner.

        Args:
            console: rich Console to print to (default: a new stdout console)
            open_browser: Open navigation URLs in the default browser
            ai_backend: Callable taking a rendered prompt and returning advice
            verbose: Echo extra diagnostics
        """
        self.console = console or Console()
        self.open_browser = open_browser
        self.ai_backend = ai_backend
        self.verbose = verbose

    def display(self, message: str, markdown: bool = False) -> None:
        if markdown:
            self.console.print(Markdown(message))
        else:
            self.console.print(message)

    def acquire_text(self, prompt: str, validation_pattern: Optional[str] = None, sensitive: bool = False) -> str:
        if self.verbose and validation_pattern:
            self.console.print(f"[dim]Expected format: {validation_pattern}[/dim]")
        try:
            return Prompt.ask(prompt, console=self.console, password=sensitive, default="", show_default=False)
        except (KeyboardInterrupt, EOFError):
            raise UserAbortedError()

    def present_choice(self, prompt: str, options: List[str]) -> str:
        self.console.print("")
        for i, option in enumerate(options, 1):
            self.console.print(f"  {i}. {option}")
        self.console.print("")
        try:
            answer = Prompt.ask(prompt, console=self.console).strip()
        except (KeyboardInterrupt, EOFError):
            raise UserAbortedError()
        # Accept the option number as well as its text
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        return answer

    def acknowledge_navigation(self, url: str, instructions: List[str]) -> bool:
        self.console.print(f"\n[bold]Open:[/bold] {url}")
        for instruction in instructions:
            self.console.print(f"  - {instruction}")
        if self.open_browser:
            import webbrowser
            webbrowser.open(url)
        try:
            return Confirm.ask("Done? Continue", console=self.console, default=True)
        except (KeyboardInterrupt, EOFError):
            raise UserAbortedError()

    def generate_ai_response(self, rendered_prompt: str) -> str:
        if self.ai_backend is None:
            return NO_AI_BACKEND_ADVICE
        with self.console.status("Generating integration advice..."):
            return self.ai_backend(rendered_prompt)

    def confirm(self, prompt: str) -> bool:
        try:
            return Confirm.ask(prompt, console=self.console, default=False)
        except (KeyboardInterrupt, EOFError):
            raise UserAbortedError()

    def write_file(self, path: str, content: str, private: bool = False) -> None:
        atomic_write(path, content, private=private)
        logger.debug(f"Wrote {path} (private={private})")
        if self.verbose:
            self.console.print(f"[dim]Wrote {path}[/dim]")


class MockActionRunner(ActionRunner):
    """Mock for testing - records calls."""

    # Put this in input_queue to simulate the user cancelling at that prompt
    ABORT = object()

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.input_queue = []  # Pre-scripted answers for acquire_text and present_choice
        self.files: Dict[str, str] = {}
        self.fail_writes = 0  # Number of upcoming write_file calls that raise OSError

    def _next_answer(self) -> str:
        if not self.input_queue:
            raise UserAbortedError("No scripted input left")
        answer = self.input_queue.pop(0)
        if answer is MockActionRunner.ABORT:
            raise UserAbortedError()
        return answer

    def display(self, message: str, markdown: bool = False) -> None:
        """Capture display call for test verification."""
        self.calls.append(("display", message))

    def acquire_text(self, prompt: str, validation_pattern: Optional[str] = None, sensitive: bool = False) -> str:
        self.calls.append(("acquire_text", prompt, validation_pattern, sensitive))
        return self._next_answer()

    def present_choice(self, prompt: str, options: List[str]) -> str:
        self.calls.append(("present_choice", prompt, list(options)))
        return self._next_answer()

    def acknowledge_navigation(self, url: str, instructions: List[str]) -> bool:
        self.calls.append(("acknowledge_navigation", url, list(instructions)))
        return self.responses.get("acknowledge_navigation", True)

    def generate_ai_response(self, rendered_prompt: str) -> str:
        self.calls.append(("generate_ai_response", rendered_prompt))
        return self.responses.get("generate_ai_response", "Generated integration advice")

    def confirm(self, prompt: str) -> bool:
        self.calls.append(("confirm", prompt))
        return self.responses.get("confirm", True)

    def write_file(self, path: str, content: str, private: bool = False) -> None:
        """Record write_file call; keep content in `files`."""
        self.calls.append(("write_file", path, private))
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise OSError(f"Simulated write failure: {path}")
        self.files[path] = content
