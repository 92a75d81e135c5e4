# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import pytest
from helpers.doubles import (
    CountingFetcher,
    FakeClock,
    MemorySnapshotStore,
    contract_output,
)

from sabre.models import CompiledArtifact, SourceSet, ToolchainSnapshot


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def fetcher() -> CountingFetcher:
    return CountingFetcher()


@pytest.fixture
def snapshot() -> ToolchainSnapshot:
    return ToolchainSnapshot(
        version="0.5.17",
        long_version="0.5.17+commit.d19bba13",
        executable="/cache/v0.5.17/solc",
        sha256="0" * 64,
    )


@pytest.fixture
def token_source() -> str:
    return (
        "pragma solidity ^0.5.0;\n"
        "\n"
        "contract Token {\n"
        "    mapping(address => uint256) balances;\n"
        "\n"
        "    function withdraw(uint256 amount) public {\n"
        "        msg.sender.call.value(amount)(\"\");\n"
        "    }\n"
        "}\n"
    )


@pytest.fixture
def token_sources(token_source: str) -> SourceSet:
    return SourceSet({"Token.sol": token_source}).freeze()


@pytest.fixture
def token_artifact() -> CompiledArtifact:
    compiled = contract_output(hashes={"withdraw(uint256)": "2e1a7d4d"})
    evm = compiled["evm"]
    return CompiledArtifact(
        contract_name="Token",
        entry="Token.sol",
        solc_version="0.5.17",
        bytecode=evm["bytecode"]["object"],
        deployed_bytecode=evm["deployedBytecode"]["object"],
        function_hashes=evm["methodIdentifiers"],
        source_list=("Token.sol",),
    )
