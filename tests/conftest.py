from __future__ import annotations

import os

import pytest

from exportregistry import BlockHeight, ExporterRegistry

DEPLOYER = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep EXPORTREG_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("EXPORTREG_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def height() -> BlockHeight:
    return BlockHeight(100)


@pytest.fixture
def registry(height: BlockHeight) -> ExporterRegistry:
    """Registry deployed by DEPLOYER at height 100."""
    return ExporterRegistry.deploy(DEPLOYER, height=height)
