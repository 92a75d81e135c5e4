# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typer application exposing ``sabre analyze`` and cache maintenance commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Final

import typer
from rich import box
from rich.table import Table

from ..config import Config
from ..config_loader import load_config
from ..console import console_manager
from ..errors import ConfigError, FormatError
from ..logging import configure_verbose_logging, fail, ok
from ..pipeline import AnalysisRequest, OutcomeKind, RunOutcome, build_pipeline, build_toolchain_cache
from ._progress import SpinnerHooks

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_USAGE: Final[int] = 2

app = typer.Typer(
    name="sabre",
    help="Security analysis client for Solidity smart contracts.",
    no_args_is_help=True,
    add_completion=False,
)
cache_app = typer.Typer(help="Inspect or clear the local compiler cache.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")

RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root used to discover configuration files."),
]


@app.command("analyze")
def analyze(
    file: Annotated[Path, typer.Argument(help="Solidity source file to analyse.")],
    contract: Annotated[
        str | None,
        typer.Argument(help="Contract to analyse when the file declares several."),
    ] = None,
    mode: Annotated[str | None, typer.Option("--mode", "-m", help="Analysis mode: quick or full.")] = None,
    output_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Report format: text, stylish, compact, table, html or json."),
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Print the request and raw service response.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Stream debug logs to stderr.")] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable ANSI colour output.")] = False,
    no_emoji: Annotated[bool, typer.Option("--no-emoji", help="Disable emoji in status lines.")] = False,
    root: RootOption = Path("."),
) -> None:
    """Compile FILE, submit it for analysis and print the findings."""

    overrides: dict[str, Any] = {"output": {"debug": debug, "verbose": verbose}}
    if no_color:
        overrides["output"]["color"] = False
    if no_emoji:
        overrides["output"]["emoji"] = False
    if output_format is not None:
        overrides["output"]["format"] = output_format
    if mode is not None:
        overrides["analysis"] = {"mode": mode}

    config = _load_or_exit(root, overrides)
    configure_verbose_logging(config.output.verbose)
    use_color = config.output.color
    use_emoji = config.output.emoji

    try:
        request = AnalysisRequest.from_options(
            str(file),
            contract,
            mode=config.analysis.mode,
            output_format=config.output.format,
        )
        hooks = SpinnerHooks(console_manager().get(color=use_color, emoji=use_emoji, stderr=True))
        pipeline = build_pipeline(config, hooks=hooks)
    except (ConfigError, FormatError) as exc:
        fail(str(exc), use_emoji=use_emoji, use_color=use_color)
        raise typer.Exit(code=EXIT_USAGE) from exc

    try:
        outcome = asyncio.run(pipeline.run(request))
    finally:
        hooks.stop()

    if config.output.debug:
        _emit_debug(outcome, color=use_color)
    raise typer.Exit(code=_report(outcome, use_color=use_color, use_emoji=use_emoji))


@cache_app.command("list")
def cache_list(root: RootOption = Path(".")) -> None:
    """List compiler versions present in the local cache."""

    config = _load_or_exit(root, None)
    cache, _ = build_toolchain_cache(config)
    versions = cache.cached_versions()
    console = console_manager().get(color=config.output.color, emoji=config.output.emoji)
    if not versions:
        console.print(f"No cached compilers under {config.toolchain.cache_dir}")
        raise typer.Exit(code=EXIT_OK)
    table = Table(box=box.SIMPLE, header_style="bold")
    table.add_column("Version")
    table.add_column("Platform")
    for version in versions:
        table.add_row(version, config.toolchain.platform)
    console.print(table)


@cache_app.command("clear")
def cache_clear(
    version: Annotated[str | None, typer.Argument(help="Version to remove; all when omitted.")] = None,
    root: RootOption = Path("."),
) -> None:
    """Remove one or every cached compiler."""

    config = _load_or_exit(root, None)
    cache, _ = build_toolchain_cache(config)
    targets = [version] if version else cache.cached_versions()
    removed = [target for target in targets if cache.invalidate(target)]
    if version and not removed:
        fail(f"solc v{version} is not cached", use_emoji=config.output.emoji, use_color=config.output.color)
        raise typer.Exit(code=EXIT_FAILURE)
    ok(
        f"Removed {len(removed)} cached compiler(s)",
        use_emoji=config.output.emoji,
        use_color=config.output.color,
    )


def _load_or_exit(root: Path, overrides: dict[str, Any] | None) -> Config:
    try:
        return load_config(root, overrides)
    except ConfigError as exc:
        fail(str(exc), use_emoji=False, use_color=True)
        raise typer.Exit(code=EXIT_USAGE) from exc


def _report(outcome: RunOutcome, *, use_color: bool, use_emoji: bool) -> int:
    match outcome.kind:
        case OutcomeKind.CLEAN:
            ok(outcome.message, use_emoji=use_emoji, use_color=use_color)
            return EXIT_OK
        case OutcomeKind.FINDINGS:
            typer.echo(outcome.rendered, nl=not outcome.rendered.endswith("\n"))
            return EXIT_OK
        case OutcomeKind.FAILED:
            stage = outcome.stage.value if outcome.stage else "run"
            fail(f"{stage} failed: {outcome.message}", use_emoji=use_emoji, use_color=use_color)
            return EXIT_FAILURE
    return EXIT_FAILURE


def _emit_debug(outcome: RunOutcome, *, color: bool) -> None:
    console = console_manager().get(color=color, emoji=False, stderr=True)
    if outcome.debug_request is not None:
        console.rule("MythX request")
        console.print_json(json.dumps(outcome.debug_request))
    if outcome.debug_response is not None:
        console.rule("MythX response")
        console.print_json(json.dumps(outcome.debug_response))


def main() -> None:
    """Console-script entry point."""

    app()


__all__ = ["app", "main"]
