"""Command-line entry point: `onboard run|validate|preview|generate-key`."""

from typing import Optional

import typer
from rich.console import Console

from .config import Settings
from .engine import (
    BlueprintLoader,
    FernetEncryptor,
    FlowEngine,
    OnboardingError,
    RealActionRunner,
    SessionState,
    UserAbortedError,
)
from .utils.logging_config import configure_logging

app = typer.Typer(help="Run declarative onboarding blueprints.")
console = Console()

EXIT_ERROR = 1
EXIT_ABORTED = 130


def _load(blueprint: str):
    try:
        return BlueprintLoader().load(blueprint)
    except OnboardingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_ERROR)


@app.command()
def run(
    blueprint: str = typer.Argument(..., help="Path to a .yaml, .toml or .json blueprint"),
    flow: Optional[str] = typer.Option(None, help="Flow id (default: first flow)"),
    output_dir: Optional[str] = typer.Option(None, help="Override output.storage_path"),
    log_level: Optional[str] = typer.Option(None, help="DEBUG, INFO, WARNING or ERROR"),
):
    """Run a blueprint flow interactively."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_ERROR)
    if output_dir:
        settings.output_dir = output_dir
    configure_logging(log_level or settings.log_level)

    document = _load(blueprint)
    encryptor = None
    if document.security.encrypt_credentials:
        try:
            encryptor = FernetEncryptor(settings.credentials_key)
        except OnboardingError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=EXIT_ERROR)
        if not settings.credentials_key:
            console.print(f"Generated credentials key (store it safely): [bold]{encryptor.key}[/bold]")

    runner = RealActionRunner(console=console, open_browser=settings.open_browser, verbose=settings.verbose)
    engine = FlowEngine(document, runner, encryptor=encryptor, settings=settings)
    try:
        session = engine.run(flow)
    except UserAbortedError as e:
        console.print(f"Onboarding cancelled: {e.message}")
        raise typer.Exit(code=EXIT_ABORTED)
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e.args[0]}")
        raise typer.Exit(code=EXIT_ERROR)
    except OnboardingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_ERROR)

    if session.state == SessionState.ABORTED:
        raise typer.Exit(code=EXIT_ABORTED)
    console.print("\n[green]Onboarding complete.[/green]")
    for path in session.artifacts:
        console.print(f"  - {path}")


@app.command()
def validate(blueprint: str = typer.Argument(..., help="Blueprint file to check")):
    """Load and validate a blueprint without running it."""
    document = _load(blueprint)
    console.print(f"[green]OK[/green] {document.name} ({document.provider})")
    for flow in document.flows:
        console.print(f"  flow {flow.id}: {len(flow.steps)} steps")


@app.command()
def preview(blueprint: str = typer.Argument(..., help="Blueprint file to preview")):
    """Show the blueprint's preview block."""
    document = _load(blueprint)
    runner = RealActionRunner(console=console)
    FlowEngine(document, runner).show_preview()


@app.command("generate-key")
def generate_key():
    """Print a new key for ONBOARD_CREDENTIALS_KEY."""
    console.print(FernetEncryptor.generate_key())


if __name__ == "__main__":
    app()
