# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing status helpers and verbose logger wiring."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

ANSI = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "cyan": "\033[36;1m",
    "red": "\033[31;1m",
    "green": "\033[32;1m",
}

PACKAGE_LOGGER = "sabre"


def is_tty(stream: TextIO | None = None) -> bool:
    """Return ``True`` when ``stream`` (stdout by default) appears to be a TTY."""

    target = stream if stream is not None else sys.stdout
    try:
        return target.isatty()
    except (AttributeError, ValueError):  # pragma: no cover - closed or replaced stream
        return False


def colorize(text: str, code: str, enable: bool) -> str:
    """Wrap ``text`` in ANSI colour codes when *enable* is truthy."""

    if not enable or not is_tty():
        return text
    return f"{ANSI.get(code, '')}{text}{ANSI['reset']}"


def emoji(symbol: str, enable: bool) -> str:
    """Return *symbol* when emoji output is enabled, otherwise blank."""

    return symbol if enable else ""


def ok(msg: str, *, use_emoji: bool, use_color: bool = True) -> None:
    """Emit a success message."""

    print(colorize(f"{emoji('✔ ', use_emoji)}{msg}", "green", use_color))


def fail(msg: str, *, use_emoji: bool, use_color: bool = True) -> None:
    """Emit an error message."""

    print(colorize(f"{emoji('✖ ', use_emoji)}{msg}", "red", use_color))


def configure_verbose_logging(verbose: bool) -> logging.Logger:
    """Stream ``sabre`` debug records to stderr when ``verbose`` is set."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    if not verbose or getattr(logger, "_sabre_verbose_configured", False):
        return logger
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    setattr(logger, "_sabre_verbose_configured", True)
    return logger
