"""infrasys command-line interface implemented with Typer."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import typer

from infrasys.errors import InfrasysError
from infrasys.services.config import InfrasysConfig
from infrasys.services.dependencies import get_infra_service, get_lock_service

SUCCESS_EXIT_CODE = 0
ERROR_EXIT_CODE = 1


class LogLevel(str, Enum):
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"


@dataclass(frozen=True)
class CliConfig:
    """Global CLI options shared by the subcommands."""

    infra_config_path: Path


def _ensure_logging(level: LogLevel) -> None:
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.value, format="%(levelname)s: %(message)s")
    else:
        root.setLevel(level.value)
        for handler in root.handlers:
            handler.setFormatter(formatter)


def _emit_error(exc: Exception) -> None:
    typer.echo(f"error: {exc}", err=True)


def _run_command(invoke: Callable[[], None]) -> None:
    """Run one subcommand body and map failures to a non-zero exit."""

    try:
        invoke()
    except (InfrasysError, ValueError) as exc:
        _emit_error(exc)
        raise typer.Exit(code=ERROR_EXIT_CODE) from exc


def _require_config(ctx: typer.Context) -> CliConfig:
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


app = typer.Typer(no_args_is_help=True, help="Set up the infrastructure for a custom TUF repo")


@app.callback()
def main(
    ctx: typer.Context,
    infra_config_path: Path = typer.Option(..., help="Path to Infra.toml"),
    log_level: LogLevel = typer.Option(LogLevel.INFO, case_sensitive=False, help="Logging level"),
) -> None:
    _ensure_logging(log_level)
    ctx.obj = CliConfig(infra_config_path=infra_config_path)


@app.command("create-infra")
def create_infra(
    ctx: typer.Context,
    root_role_path: Path = typer.Option(..., help="Where root.json is created (must not exist yet)"),
    root_expiration: Optional[str] = typer.Option(
        None,
        help="tuftool expiration for root.json, e.g. 'in 52 weeks'",
    ),
) -> None:
    """Create the S3 bucket, KMS keys and signed root.json for every repo, then write Infra.lock."""

    cfg = _require_config(ctx)

    def _invoke() -> None:
        config = InfrasysConfig.from_env(root_expiration=root_expiration)
        service = get_infra_service(config)
        asyncio.run(
            service.create_infra(
                infra_config_path=cfg.infra_config_path,
                root_role_path=root_role_path,
            )
        )

    _run_command(_invoke)


@app.command("check-infra-lock")
def check_infra_lock(ctx: typer.Context) -> None:
    """Check that Infra.lock agrees with Infra.toml and has every repo output recorded."""

    cfg = _require_config(ctx)
    problems: list[str] = []

    def _invoke() -> None:
        problems.extend(get_lock_service().check_infra_lock(cfg.infra_config_path))

    _run_command(_invoke)
    if problems:
        for problem in problems:
            typer.echo(f"error: {problem}", err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE)

    typer.echo("Infra.lock is consistent with Infra.toml")
    raise typer.Exit(code=SUCCESS_EXIT_CODE)
