"""Vidya CLI entry point.

Provides command-line access to the assistant: an interactive chat,
one-shot questions, and the translation layer on its own.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from typing_extensions import Annotated

from vidya.errors import InvalidMessageError

if TYPE_CHECKING:
    from vidya.main import VidyaApplication

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create CLI app
app = typer.Typer(
    name="vidya",
    help="Vidya - Multilingual university assistant with evidence-grounded answers",
    add_completion=False,
)

EXIT_WORDS = {"exit", "quit", ":q"}

ConfigOption = Annotated[str, typer.Option("--config", "-c", help="Path to YAML configuration file")]
CorpusOption = Annotated[
    list[Path] | None, typer.Option("--corpus", help="YAML corpus file (repeatable)")
]
ProfilesOption = Annotated[Path | None, typer.Option("--profiles", help="YAML student profiles file")]
OfflineOption = Annotated[
    bool, typer.Option("--offline", help="No generation, remote translation or web search")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")]


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _build_application(
    config: str,
    corpus: list[Path] | None,
    profiles: Path | None,
    offline: bool,
) -> VidyaApplication:
    from vidya.config import get_config
    from vidya.main import VidyaApplication

    if config and not Path(config).exists():
        typer.echo(f"❌ Configuration file not found: {config}", err=True)
        raise typer.Exit(code=1)

    application = VidyaApplication(get_config(config or None), offline=offline)
    try:
        for path in corpus or []:
            application.load_corpus(path)
        if profiles is not None:
            application.load_profiles(profiles)
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Failed to load data: {e}", err=True)
        raise typer.Exit(code=1) from e
    return application


def _start_metrics(port: int | None, enabled: bool) -> None:
    if port and not enabled:
        typer.echo("⚠️  Metrics are disabled in configuration, not starting the metrics server", err=True)
        return
    if port:
        from vidya.monitoring.metrics import start_metrics_server

        start_metrics_server(port)


@app.command()
def chat(
    user: Annotated[str, typer.Option("--user", "-u", help="User identifier")] = "cli-user",
    session: Annotated[str, typer.Option("--session", "-s", help="Session label")] = "cli",
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Reply language (code or name)")
    ] = None,
    config: ConfigOption = "",
    corpus: CorpusOption = None,
    profiles: ProfilesOption = None,
    offline: OfflineOption = False,
    metrics_port: Annotated[
        int | None, typer.Option("--metrics-port", help="Expose Prometheus metrics on this port")
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Start an interactive conversation with the assistant.

    Type ``exit`` or ``quit`` to leave.

    Examples:
        # Chat against a local corpus without network access
        vidya chat --corpus data/faq.yaml --offline

        # Reply in Hindi
        vidya chat --language hi --corpus data/faq.yaml
    """
    _configure_logging(verbose)
    application = _build_application(config, corpus, profiles, offline)
    _start_metrics(metrics_port, application.config.metrics_enabled)

    async def _loop() -> None:
        async with application:
            assistant = await application.initialize()
            typer.echo(f"{application.config.assistant_name} is ready. Type 'exit' to leave.")
            while True:
                try:
                    text = typer.prompt("you")
                except (EOFError, typer.Abort):
                    break
                if text.strip().lower() in EXIT_WORDS:
                    break
                try:
                    response = await assistant.handle_message(user, session, text, language)
                except InvalidMessageError as e:
                    typer.echo(f"⚠️  {e.user_message}")
                    continue
                typer.echo(f"{application.config.assistant_name.lower()}: {response.answer}")

    asyncio.run(_loop())


@app.command()
def ask(
    message: Annotated[str, typer.Argument(help="Message to send")],
    user: Annotated[str, typer.Option("--user", "-u", help="User identifier")] = "cli-user",
    session: Annotated[str, typer.Option("--session", "-s", help="Session label")] = "cli",
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Reply language (code or name)")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the full response as JSON")] = False,
    config: ConfigOption = "",
    corpus: CorpusOption = None,
    profiles: ProfilesOption = None,
    offline: OfflineOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Ask a single question and print the answer."""
    _configure_logging(verbose)
    application = _build_application(config, corpus, profiles, offline)

    async def _ask() -> None:
        async with application:
            assistant = await application.initialize()
            response = await assistant.handle_message(user, session, message, language)
        if as_json:
            typer.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
        else:
            typer.echo(response.answer)

    try:
        asyncio.run(_ask())
    except InvalidMessageError as e:
        typer.echo(f"❌ {e.user_message}", err=True)
        raise typer.Exit(code=2) from e


@app.command()
def translate(
    text: Annotated[str, typer.Argument(help="Text to translate")],
    target: Annotated[str, typer.Option("--to", "-t", help="Target language")] = "en",
    source: Annotated[str, typer.Option("--from", "-f", help="Source language or 'auto'")] = "auto",
    config: ConfigOption = "",
    verbose: VerboseOption = False,
) -> None:
    """Translate text through the provider chain.

    Times, dates, numbers, URLs and codes are kept exactly as written.
    """
    _configure_logging(verbose)
    application = _build_application(config, None, None, offline=False)

    async def _translate() -> str:
        async with application:
            return await application.translation.translate(text, source, target)

    typer.echo(asyncio.run(_translate()))


@app.command()
def detect(
    text: Annotated[str, typer.Argument(help="Text to inspect")],
    offline: Annotated[
        bool, typer.Option("--offline", help="Use the local script and keyword heuristics only")
    ] = False,
    config: ConfigOption = "",
) -> None:
    """Detect the language of a message."""
    application = _build_application(config, None, None, offline)

    async def _detect() -> str:
        async with application:
            return await application.translation.detect_language(text)

    code = asyncio.run(_detect())
    from vidya.translation import language_name

    typer.echo(f"{code} ({language_name(code)})")


@app.command()
def version() -> None:
    """Show Vidya version information."""
    try:
        import importlib.metadata

        ver = importlib.metadata.version("vidya")
        typer.echo(f"Vidya version: {ver}")
    except importlib.metadata.PackageNotFoundError:
        typer.echo("Vidya version: unknown")


@app.command()
def info(config: ConfigOption = "") -> None:
    """Show Vidya configuration summary."""
    from vidya.config import get_config
    from vidya.translation import language_name

    settings = get_config(config or None)
    typer.echo(f"{settings.assistant_name} - assistant for {settings.institution_name}")
    typer.echo("")
    typer.echo(f"Working language: {language_name(settings.translation.working_language)}")
    typer.echo(
        "Supported languages: "
        + ", ".join(language_name(code) for code in settings.translation.supported_languages)
    )
    typer.echo(f"Translation providers: {', '.join(settings.translation.provider_order)}")
    typer.echo(f"Embedding backend: {settings.embedding.backend} (dim={settings.embedding.dimension})")
    typer.echo(f"Generation model: {settings.generation.model}")
    typer.echo(f"Web search by default: {'yes' if settings.retrieval.include_web_search else 'no'}")


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
