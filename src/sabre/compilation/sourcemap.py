# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers for compiler source maps, bytecode offsets and line/column lookup."""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Final

PUSH1: Final[int] = 0x60
PUSH32: Final[int] = 0x7F
# Unlinked library references: "__$<34 hex>$__" or the legacy "__<name padded>__".
_LINK_PLACEHOLDER: Final[re.Pattern[str]] = re.compile(r"__.{36}__")


@dataclass(frozen=True, slots=True)
class SourceMapEntry:
    """One decompressed ``s:l:f:j`` source map element."""

    start: int
    length: int
    file_index: int
    jump: str = "-"


def decompress_source_map(source_map: str) -> list[SourceMapEntry]:
    """Expand a compressed source map; empty fields repeat the previous value."""

    if not source_map:
        return []
    start, length, file_index, jump = 0, 0, -1, "-"
    entries: list[SourceMapEntry] = []
    for item in source_map.split(";"):
        fields = item.split(":")
        if len(fields) > 0 and fields[0] != "":
            start = int(fields[0])
        if len(fields) > 1 and fields[1] != "":
            length = int(fields[1])
        if len(fields) > 2 and fields[2] != "":
            file_index = int(fields[2])
        if len(fields) > 3 and fields[3] != "":
            jump = fields[3]
        entries.append(SourceMapEntry(start, length, file_index, jump))
    return entries


def instruction_index(bytecode: str) -> dict[int, int]:
    """Return a mapping of program counter to instruction number for ``bytecode``."""

    text = _LINK_PLACEHOLDER.sub("0" * 40, bytecode.strip().removeprefix("0x"))
    if len(text) % 2:
        text = text[:-1]
    code = bytes.fromhex(text)
    mapping: dict[int, int] = {}
    pc = 0
    index = 0
    while pc < len(code):
        mapping[pc] = index
        opcode = code[pc]
        pc += 1 + (opcode - PUSH1 + 1 if PUSH1 <= opcode <= PUSH32 else 0)
        index += 1
    return mapping


class LineIndex:
    """Translate byte offsets of a source text into 1-based line/column pairs."""

    def __init__(self, text: str) -> None:
        self._data = text.encode("utf-8")
        self._starts = [0]
        self._starts.extend(pos + 1 for pos, byte in enumerate(self._data) if byte == 0x0A)

    def position(self, offset: int) -> tuple[int, int] | None:
        if offset < 0 or offset > len(self._data):
            return None
        line = bisect_right(self._starts, offset) - 1
        prefix = self._data[self._starts[line] : offset]
        return line + 1, len(prefix.decode("utf-8", errors="replace")) + 1


__all__ = [
    "LineIndex",
    "SourceMapEntry",
    "decompress_source_map",
    "instruction_index",
]
