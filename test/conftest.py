"""Test configuration to ensure repo modules are importable."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("PYTHONPATH", str(ROOT))

from mj_orchestrator.config import OrchestratorConfig  # noqa: E402
from mj_orchestrator.simulation import SimulatedLedger, SimulatedOracle  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_orchestrator_env(monkeypatch):
    """Keep ``MJ_*`` variables from the caller's shell out of the tests."""

    for key in list(os.environ):
        if key.startswith("MJ_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fast_config(tmp_path) -> OrchestratorConfig:
    return OrchestratorConfig(
        poll_interval=0.005,
        creation_timeout=2.0,
        decryption_timeout=2.0,
        oracle_timeout=2.0,
        deployment_file=tmp_path / "MJVS.yaml",
        chart_path=tmp_path / "images" / "chart.png",
        random_seed=1234,
    )


@pytest.fixture
def ledger() -> SimulatedLedger:
    return SimulatedLedger()


@pytest.fixture
def oracle(ledger) -> SimulatedOracle:
    return SimulatedOracle(ledger)
