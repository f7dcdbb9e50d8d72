"""Command line interface for Sitepublish."""

from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import signal
from collections.abc import Callable
from typing import Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console

from sitepublish import get_version
from sitepublish.config import Config, load_config
from sitepublish.core import (
    CredentialError,
    Forbidden,
    GenerationRejectedError,
    OrchestratorEvents,
    PublishOrchestrator,
    PublishResult,
    RemoteHostError,
    WarningCenter,
)
from sitepublish.core.models import GENERATE_SUCCESS
from sitepublish.generator import DirectorySiteGenerator
from sitepublish.git import GitRepoController
from sitepublish.logging import configure_logging
from sitepublish.remote import GithubClient
from sitepublish.storage import LocalCredentialStore, SettingsDatabase
from sitepublish.ui import ProgressView, render_snapshot

DEFAULT_STATE_PATH = pathlib.Path(".sitepublish/state.sqlite")

EXIT_FAILURE = 1
EXIT_REJECTED = 2
EXIT_REMOTE = 3


def _load_environment(env_file: Optional[pathlib.Path]) -> None:
    """Load environment variables from .env files."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    else:
        load_dotenv(override=False)


def _prepare_logging(
    config: Config,
    override_path: Optional[pathlib.Path],
    override_level: Optional[str],
) -> logging.Logger:
    """Configure logging based on configuration and overrides."""

    return configure_logging(
        log_path=override_path or config.logging.path,
        level=(override_level or config.logging.level).upper(),
        mirror_to_console=False,
    )


def _build_orchestrator(config: Config, logger: logging.Logger) -> PublishOrchestrator:
    database = SettingsDatabase(config.resolve_path(config.storage.path or DEFAULT_STATE_PATH))
    database.initialize()

    warnings = WarningCenter(logger=logger)
    source_dir = config.resolve_path(config.generator.source_dir)
    if not source_dir.is_dir():
        warnings.raise_warning(
            f"Content directory {source_dir} does not exist.",
            forbidden=[Forbidden.GENERATE],
        )

    remote_settings = config.remote
    return PublishOrchestrator(
        generator=DirectorySiteGenerator(
            source_dir=source_dir,
            output_dir=config.resolve_path(config.generator.output_dir),
            logger=logger,
        ),
        git=GitRepoController(
            repository_dir=config.resolve_path(config.publishing.repository_dir),
            logger=logger,
            branch=config.publishing.branch,
        ),
        remote=GithubClient(
            logger=logger,
            api_url=remote_settings.api_url,
            pages_domain=remote_settings.pages_domain,
            remote_url=remote_settings.remote_url,
            timeout=remote_settings.timeout_seconds,
            max_retries=remote_settings.max_retries,
            backoff_min_seconds=remote_settings.backoff_min_seconds,
            backoff_max_seconds=remote_settings.backoff_max_seconds,
        ),
        credential_store=LocalCredentialStore(database, token_env=config.credentials.token_env),
        logger=logger,
        warnings=warnings,
        grace_period_seconds=config.publishing.grace_period_seconds,
    )


def _orchestrator(ctx: typer.Context) -> PublishOrchestrator:
    orchestrator = ctx.obj.get("orchestrator")
    if orchestrator is None:
        orchestrator = _build_orchestrator(ctx.obj["config"], ctx.obj["logger"])
        ctx.obj["orchestrator"] = orchestrator
    return orchestrator


app = typer.Typer(
    name="sitepublish",
    help="Generate a static site and publish it to a git-backed host.",
    no_args_is_help=True,
    add_completion=False,
)

config_app = typer.Typer(help="Configuration utilities.", no_args_is_help=True)
credentials_app = typer.Typer(help="Manage publishing credentials.", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(credentials_app, name="credentials")


def _version_callback(value: bool) -> None:
    """Print the package version and exit when requested."""

    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def main(  # pragma: no cover - exercised via CLI invocation
    ctx: typer.Context,
    config: Optional[pathlib.Path] = typer.Option(
        None,
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (used exclusively).",
    ),
    env_file: Optional[pathlib.Path] = typer.Option(
        None,
        "--env-file",
        metavar="PATH",
        help="Load environment variables from .env-style file before execution.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level (debug, info, warn, error).",
    ),
    log_path: Optional[pathlib.Path] = typer.Option(
        None,
        "--log-path",
        metavar="PATH",
        help="Override the base directory or file for log output.",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show Sitepublish version and exit.",
    ),
) -> None:
    """CLI root; loads configuration, logging, and shared context."""

    ctx.ensure_object(dict)
    _load_environment(env_file)

    try:
        config_obj = load_config(config)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    logger = _prepare_logging(config_obj, log_path, log_level)
    ctx.obj.update({"config": config_obj, "config_path": config, "logger": logger})


@app.command()
def generate(ctx: typer.Context) -> None:
    """Generate the site into the configured output directory."""

    orchestrator = _orchestrator(ctx)

    async def _run() -> None:
        await orchestrator.initialize()
        await orchestrator.generate_site()

    try:
        asyncio.run(_run())
    except GenerationRejectedError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_REJECTED) from exc

    progress = orchestrator.generating_progress
    typer.echo(progress.message)
    if progress.result != GENERATE_SUCCESS:
        raise typer.Exit(code=EXIT_FAILURE)


@app.command()
def publish(
    ctx: typer.Context,
    create_repo: bool = typer.Option(
        False,
        "--create-repo",
        help="Create the remote repository when it does not exist yet.",
    ),
    live: bool = typer.Option(
        True,
        "--live/--no-live",
        help="Show a live progress panel.",
    ),
) -> None:
    """Generate the site and publish it; press Ctrl+C during the countdown to cancel."""

    logger: logging.Logger = ctx.obj["logger"]
    orchestrator = _orchestrator(ctx)
    console = Console()

    async def _run() -> int:
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()

        def _request_stop() -> None:
            stop_requested.set()
            orchestrator.stop_publishing()

        installed = _install_signal_handlers(loop, _request_stop)
        view = ProgressView(console=console, enabled=live)
        unsubscribe = orchestrator.events.on(OrchestratorEvents.STATE_CHANGED, view.update)
        try:
            with view:
                return await _generate_and_publish(orchestrator, create_repo, stop_requested)
        finally:
            unsubscribe()
            _restore_signal_handlers(loop, installed)

    try:
        exit_code = asyncio.run(_run())
    except (CredentialError, GenerationRejectedError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_REJECTED) from exc
    except RemoteHostError as exc:
        logger.error("Remote host error: %s", exc)
        typer.echo(f"Remote host error: {exc}", err=True)
        raise typer.Exit(code=EXIT_REMOTE) from exc

    console.print(render_snapshot(orchestrator.snapshot()))
    if exit_code:
        raise typer.Exit(code=exit_code)


async def _generate_and_publish(
    orchestrator: PublishOrchestrator, create_repo: bool, stop_requested: asyncio.Event
) -> int:
    """Run initialize, generate and publish; a stop requested before publishing skips it."""

    await orchestrator.initialize()
    await orchestrator.generate_site()
    if orchestrator.generating_progress.result != GENERATE_SUCCESS:
        return EXIT_FAILURE
    if stop_requested.is_set():
        typer.echo("Publishing cancelled before it started.", err=True)
        return EXIT_FAILURE
    if orchestrator.is_repository_missing and not create_repo:
        typer.echo(
            f"Repository {orchestrator.repository_name} does not exist; "
            "rerun with --create-repo to create it.",
            err=True,
        )
        return EXIT_FAILURE

    await orchestrator.publish(need_to_create_repo=create_repo)
    result = orchestrator.publishing_progress.result
    return 0 if result is PublishResult.SUCCESS else EXIT_FAILURE


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop, handler: Callable[[], None]
) -> list[tuple[str, int, object]]:
    installed: list[tuple[str, int, object]] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handler)
            installed.append(("loop", sig, None))
        except NotImplementedError:
            previous = signal.getsignal(sig)

            def _handler(*_args):  # type: ignore[no-untyped-def]
                loop.call_soon_threadsafe(handler)

            signal.signal(sig, _handler)
            installed.append(("signal", sig, previous))
    return installed


def _restore_signal_handlers(
    loop: asyncio.AbstractEventLoop, installed: list[tuple[str, int, object]]
) -> None:
    for kind, sig, previous in installed:
        if kind == "loop":
            loop.remove_signal_handler(sig)
        else:
            signal.signal(sig, previous)


@credentials_app.command("show")
def credentials_show(ctx: typer.Context) -> None:
    """Show the effective credentials (the token is masked)."""

    orchestrator = _orchestrator(ctx)
    orchestrator.load_credentials()
    info = orchestrator.credentials
    if info is None:  # pragma: no cover - load_credentials always sets them
        raise typer.Exit(code=EXIT_FAILURE)

    typer.echo(f"host_name: {info.host_name}")
    typer.echo(f"user_name: {info.user_name or '-'}")
    typer.echo(f"email: {info.email or '-'}")
    typer.echo(f"token: {'set' if info.token else 'missing'}")
    typer.echo(f"repository: {orchestrator.repository_name or '-'}")
    typer.echo(f"default repository: {'yes' if orchestrator.is_default_repository else 'no'}")
    typer.echo(f"valid: {'yes' if orchestrator.is_credential_valid else 'no'}")


@credentials_app.command("set")
def credentials_set(
    ctx: typer.Context,
    user_name: Optional[str] = typer.Option(None, "--user-name", help="Account name."),
    email: Optional[str] = typer.Option(None, "--email", help="Commit author email."),
    host_name: Optional[str] = typer.Option(None, "--host-name", help="Git host name."),
    repository: Optional[str] = typer.Option(
        None,
        "--repository",
        help="Repository name override; pass an empty string to use the default.",
    ),
) -> None:
    """Persist credential fields. The token is read from the environment only."""

    updates = {
        key: value
        for key, value in {
            "user_name": user_name,
            "email": email,
            "host_name": host_name,
            "repository": repository,
        }.items()
        if value is not None
    }
    if "repository" in updates and not updates["repository"]:
        updates["repository"] = None
    if not updates:
        raise typer.BadParameter("Provide at least one field to update.")

    orchestrator = _orchestrator(ctx)
    orchestrator.load_credentials()
    orchestrator.save_credentials(updates)
    typer.echo(f"Saved credentials for {orchestrator.repository_name or 'an incomplete account'}")


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    format: str = typer.Option(
        "yaml",
        "--format",
        help="Output format (yaml or json).",
    ),
    paths: bool = typer.Option(
        False,
        "--paths",
        help="List the configuration files that were loaded.",
    ),
) -> None:
    """Show the effective configuration for this invocation."""

    config: Config = ctx.obj["config"]

    normalized_format = format.strip().lower()
    if normalized_format not in {"yaml", "json"}:
        raise typer.BadParameter("Format must be 'yaml' or 'json'.", param_hint="--format")

    if paths and config.loaded_from:
        typer.echo("Loaded configuration from:", err=True)
        for entry in config.loaded_from:
            typer.echo(f"- {entry}", err=True)

    data = config.model.model_dump(mode="json")
    if normalized_format == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, sort_keys=False))


@app.command()
def version() -> None:
    """Print the Sitepublish version."""

    typer.echo(get_version())
