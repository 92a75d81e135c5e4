# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for breadth-first import resolution."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers.doubles import MemoryFileSystem

from sabre.discovery import DependencyResolver, LocalFileSystem, RegexImportParser
from sabre.errors import ResolutionError, SourceReadError, UnresolvedImport


def test_resolves_transitive_imports_breadth_first() -> None:
    fs = MemoryFileSystem(
        {
            "contracts/Main.sol": 'import "./A.sol";\nimport "./B.sol";\ncontract Main {}\n',
            "contracts/A.sol": 'import "./lib/C.sol";\ncontract A {}\n',
            "contracts/B.sol": "contract B {}\n",
            "contracts/lib/C.sol": "contract C {}\n",
        },
    )

    sources = DependencyResolver(fs).resolve("contracts/Main.sol")

    assert list(sources) == [
        "contracts/Main.sol",
        "contracts/A.sol",
        "contracts/B.sol",
        "contracts/lib/C.sol",
    ]
    assert sources.frozen


def test_import_cycles_terminate_and_read_each_file_once() -> None:
    fs = MemoryFileSystem(
        {
            "A.sol": 'import "./B.sol";\ncontract A {}\n',
            "B.sol": 'import "./A.sol";\nimport "./B.sol";\ncontract B {}\n',
        },
    )

    sources = DependencyResolver(fs).resolve("A.sol")

    assert list(sources) == ["A.sol", "B.sol"]
    assert fs.reads == {"A.sol": 1, "B.sol": 1}


def test_diamond_imports_are_read_once() -> None:
    fs = MemoryFileSystem(
        {
            "Main.sol": 'import "./Left.sol";\nimport "./Right.sol";\n',
            "Left.sol": 'import "./Base.sol";\n',
            "Right.sol": 'import "./Base.sol";\n',
            "Base.sol": "contract Base {}\n",
        },
    )

    sources = DependencyResolver(fs).resolve("Main.sol")

    assert list(sources)[-1] == "Base.sol"
    assert fs.reads["Base.sol"] == 1


def test_unresolved_import_names_path_and_importer() -> None:
    fs = MemoryFileSystem({"Main.sol": 'import "./Missing.sol";\n'})

    with pytest.raises(UnresolvedImport) as excinfo:
        DependencyResolver(fs).resolve("Main.sol")

    assert excinfo.value.path == "./Missing.sol"
    assert excinfo.value.importer == "Main.sol"
    assert isinstance(excinfo.value, ResolutionError)


def test_missing_entry_file_is_a_read_error() -> None:
    with pytest.raises(SourceReadError):
        DependencyResolver(MemoryFileSystem({})).resolve("Nope.sol")


def test_package_imports_search_node_modules() -> None:
    fs = MemoryFileSystem(
        {
            "project/contracts/Token.sol": 'import "openzeppelin-solidity/contracts/math/SafeMath.sol";\n',
            "project/node_modules/openzeppelin-solidity/contracts/math/SafeMath.sol": "library SafeMath {}\n",
        },
    )

    sources = DependencyResolver(fs).resolve("project/contracts/Token.sol")

    assert "openzeppelin-solidity/contracts/math/SafeMath.sol" in sources


def test_package_imports_use_include_paths() -> None:
    fs = MemoryFileSystem(
        {
            "src/Vault.sol": 'import {Ownable} from "access/Ownable.sol";\n',
            "vendor/access/Ownable.sol": "contract Ownable {}\n",
        },
    )

    sources = DependencyResolver(fs, include_paths=["vendor"]).resolve("src/Vault.sol")

    assert sources["access/Ownable.sol"] == "contract Ownable {}\n"


def test_node_modules_search_can_be_disabled() -> None:
    fs = MemoryFileSystem(
        {
            "contracts/Token.sol": 'import "pkg/Lib.sol";\n',
            "node_modules/pkg/Lib.sol": "library Lib {}\n",
        },
    )

    with pytest.raises(UnresolvedImport):
        DependencyResolver(fs, search_node_modules=False).resolve("contracts/Token.sol")


def test_relative_imports_inside_packages_keep_package_unit_names() -> None:
    fs = MemoryFileSystem(
        {
            "Token.sol": 'import "pkg/token/ERC20.sol";\n',
            "node_modules/pkg/token/ERC20.sol": 'import "../math/SafeMath.sol";\n',
            "node_modules/pkg/math/SafeMath.sol": "library SafeMath {}\n",
        },
    )

    sources = DependencyResolver(fs).resolve("Token.sol")

    assert list(sources) == ["Token.sol", "pkg/token/ERC20.sol", "pkg/math/SafeMath.sol"]


def test_import_parser_ignores_commented_imports() -> None:
    source = (
        '// import "./Old.sol";\n'
        'import "./A.sol";\n'
        "/* import './B.sol'; */\n"
        "import * as C from './C.sol';\n"
        'import {D, E as F} from "./D.sol";\n'
        'import "./A.sol";\n'
    )

    assert RegexImportParser().parse(source) == ["./A.sol", "./C.sol", "./D.sol"]


def test_local_file_system_reads_from_disk(tmp_path: Path) -> None:
    (tmp_path / "A.sol").write_text('import "./B.sol";\n', encoding="utf-8")
    (tmp_path / "B.sol").write_text("contract B {}\n", encoding="utf-8")

    sources = DependencyResolver(LocalFileSystem()).resolve(str(tmp_path / "A.sol"))

    assert list(sources) == [str(tmp_path / "A.sol"), str(tmp_path / "B.sol")]


def test_entry_content_supplied_by_caller_is_not_read_again() -> None:
    fs = MemoryFileSystem(
        {
            "Main.sol": 'import "./A.sol";\n',
            "A.sol": 'import "./Main.sol";\ncontract A {}\n',
        },
    )

    sources = DependencyResolver(fs).resolve("Main.sol", entry_content='import "./A.sol";\n')

    assert list(sources) == ["Main.sol", "A.sol"]
    assert fs.reads == {"A.sol": 1}
