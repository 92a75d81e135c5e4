# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Detect the compiler release required by a Solidity source file."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Final

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from ..config import ReleasePolicy
from ..errors import MalformedVersionConstraint, NoVersionConstraint, UnsatisfiableVersionConstraint
from ..models import VersionIdentifier

PRAGMA_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bpragma\s+solidity\s+([^;]*);")
_STRIP_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*')|(/\*.*?\*/|//[^\n]*)",
    re.DOTALL,
)
_COMPARATOR: Final[re.Pattern[str]] = re.compile(
    r"(?P<op>\^|~|>=|<=|>|<|=)?\s*v?(?P<version>(?:\d+|[xX*])(?:\.(?:\d+|[xX*])){0,2})"
)
_HYPHEN: Final[re.Pattern[str]] = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")
_WILDCARDS: Final[frozenset[str]] = frozenset({"x", "X", "*"})


def strip_comments(source: str) -> str:
    """Return ``source`` with comments blanked out; string literals are preserved."""

    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return re.sub(r"[^\n]", " ", match.group(2))

    return _STRIP_PATTERN.sub(_replace, source)


@dataclass(frozen=True, slots=True)
class VersionConstraint:
    """An npm-style version range translated to PEP 440 specifier sets.

    ``alternatives`` are OR'ed; each :class:`SpecifierSet` is an intersection.
    """

    text: str
    alternatives: tuple[SpecifierSet, ...]

    def contains(self, version: Version) -> bool:
        return any(spec.contains(version, prereleases=False) for spec in self.alternatives)


def parse_constraint(text: str) -> VersionConstraint:
    """Translate a ``pragma solidity`` range into a :class:`VersionConstraint`.

    Raises:
        MalformedVersionConstraint: The range uses unsupported or invalid syntax.
    """

    raw = text.strip()
    if not raw:
        raise MalformedVersionConstraint(text, "empty range")
    alternatives: list[SpecifierSet] = []
    for alternative in raw.split("||"):
        specifiers = _parse_alternative(alternative, raw)
        try:
            alternatives.append(SpecifierSet(",".join(specifiers)))
        except InvalidSpecifier as exc:
            raise MalformedVersionConstraint(raw, str(exc)) from exc
    return VersionConstraint(text=raw, alternatives=tuple(alternatives))


def extract_constraints(source: str) -> tuple[VersionConstraint, ...]:
    """Parse every ``pragma solidity`` directive found in ``source``.

    Raises:
        NoVersionConstraint: No directive is present.
        MalformedVersionConstraint: A directive cannot be parsed.
    """

    directives = PRAGMA_PATTERN.findall(strip_comments(source))
    if not directives:
        raise NoVersionConstraint()
    return tuple(parse_constraint(directive) for directive in directives)


class VersionDetector:
    """Resolve a source file's version pragmas to one concrete compiler release."""

    def __init__(
        self,
        releases: Callable[[], Iterable[str]],
        *,
        policy: ReleasePolicy = ReleasePolicy.LATEST,
        cached: Callable[[], Iterable[str]] | None = None,
    ) -> None:
        self._releases = releases
        self._policy = policy
        self._cached = cached

    def detect(self, source: str) -> VersionIdentifier:
        """Return the highest known release satisfying every pragma in ``source``."""

        constraints = extract_constraints(source)
        if self._policy is ReleasePolicy.PREFER_CACHED and self._cached is not None:
            cached = select_release(constraints, self._cached())
            if cached is not None:
                return cached
        selected = select_release(constraints, self._releases())
        if selected is None:
            raise UnsatisfiableVersionConstraint([constraint.text for constraint in constraints])
        return selected


def select_release(
    constraints: Iterable[VersionConstraint],
    candidates: Iterable[str],
) -> VersionIdentifier | None:
    """Return the highest candidate satisfying all ``constraints``."""

    active = tuple(constraints)
    best: tuple[Version, str] | None = None
    for candidate in candidates:
        try:
            version = Version(candidate)
        except InvalidVersion:
            continue
        if version.is_prerelease or not all(c.contains(version) for c in active):
            continue
        if best is None or version > best[0]:
            best = (version, candidate)
    return best[1] if best else None


def _parse_alternative(alternative: str, raw: str) -> list[str]:
    text = alternative.strip()
    if not text:
        raise MalformedVersionConstraint(raw, "empty alternative")
    hyphen = _HYPHEN.match(text)
    if hyphen:
        low = _parse_partial(hyphen.group("low"), raw)
        high = _parse_partial(hyphen.group("high"), raw)
        return [*_comparator_specs(">=", low), *_comparator_specs("<=", high)]

    specifiers: list[str] = []
    position = 0
    while position < len(text):
        if text[position].isspace():
            position += 1
            continue
        match = _COMPARATOR.match(text, position)
        if match is None or match.end() == position:
            raise MalformedVersionConstraint(raw, f"unexpected '{text[position:]}'")
        end = match.end()
        if end < len(text) and not (text[end].isspace() or text[end] in "<>=^~"):
            raise MalformedVersionConstraint(raw, f"unexpected '{text[end:]}'")
        parts = _parse_partial(match.group("version"), raw)
        specifiers.extend(_comparator_specs(match.group("op") or "=", parts))
        position = end
    return specifiers


def _parse_partial(version: str, raw: str) -> tuple[int, ...]:
    """Return the numeric components of ``version``, stopping at the first wildcard."""

    parts: list[int] = []
    for piece in version.lstrip("v").split("."):
        if piece in _WILDCARDS:
            break
        if not piece.isdigit():
            raise MalformedVersionConstraint(raw, f"invalid version '{version}'")
        parts.append(int(piece))
    if len(version.split(".")) > 3:
        raise MalformedVersionConstraint(raw, f"invalid version '{version}'")
    return tuple(parts)


def _fmt(parts: Iterable[int]) -> str:
    padded = list(parts) + [0] * 3
    return ".".join(str(part) for part in padded[:3])


def _bump(parts: tuple[int, ...], index: int) -> str:
    bumped = list(parts[: index + 1])
    bumped[index] += 1
    return _fmt(bumped)


def _comparator_specs(op: str, parts: tuple[int, ...]) -> list[str]:
    """Translate one npm comparator into PEP 440 specifiers."""

    if not parts:
        # "*" or "x": any version; "<*" and ">*" cannot match anything.
        return [] if op in {"=", ">=", "<=", "^", "~"} else ["<0.0.0"]
    full = len(parts) == 3
    match op:
        case "=":
            return [f"=={_fmt(parts)}"] if full else [f">={_fmt(parts)}", f"<{_bump(parts, len(parts) - 1)}"]
        case ">=":
            return [f">={_fmt(parts)}"]
        case ">":
            return [f">{_fmt(parts)}"] if full else [f">={_bump(parts, len(parts) - 1)}"]
        case "<":
            return [f"<{_fmt(parts)}"]
        case "<=":
            return [f"<={_fmt(parts)}"] if full else [f"<{_bump(parts, len(parts) - 1)}"]
        case "~":
            upper = _bump(parts, 1) if len(parts) > 1 else _bump(parts, 0)
            return [f">={_fmt(parts)}", f"<{upper}"]
        case "^":
            return [f">={_fmt(parts)}", f"<{_caret_upper(parts)}"]
    raise ValueError(f"unsupported comparator {op!r}")


def _caret_upper(parts: tuple[int, ...]) -> str:
    """Return the exclusive upper bound of ``^parts`` (first non-zero component bumps)."""

    for index, value in enumerate(parts):
        if value != 0:
            return _bump(parts, index)
    return _bump(parts, len(parts) - 1)


__all__ = [
    "PRAGMA_PATTERN",
    "VersionConstraint",
    "VersionDetector",
    "extract_constraints",
    "parse_constraint",
    "select_release",
    "strip_comments",
]
