from pathlib import Path

import pytest

from mj_orchestrator.config import (
    DEFAULT_ABI_PATH,
    OrchestratorConfig,
    load_contract_address,
    save_contract_address,
)
from mj_orchestrator.errors import ConfigurationMissing

ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def test_defaults_point_at_bundled_abi():
    config = OrchestratorConfig()

    assert config.abi_path == DEFAULT_ABI_PATH
    assert config.abi_path.exists()
    assert config.deployment_file == Path("MJVS.yaml")
    assert config.contract_address is None


def test_yaml_values_are_overridden_by_environment(tmp_path):
    path = tmp_path / "orchestrator.yaml"
    path.write_text("rpc_url: http://node:8545\npoll_interval: 3\ncreation_timeout: 30\n", encoding="utf-8")

    config = OrchestratorConfig.load(path, environ={"MJ_POLL_INTERVAL": "0.5", "MJ_RANDOM_SEED": "9", "MJ_SENDER": " "})

    assert config.rpc_url == "http://node:8545"
    assert config.poll_interval == 0.5
    assert config.creation_timeout == 30.0
    assert config.random_seed == 9
    assert config.sender is None


def test_load_reads_process_environment(monkeypatch):
    monkeypatch.setenv("MJ_RPC_URL", "http://env-node:8545")

    assert OrchestratorConfig.load().rpc_url == "http://env-node:8545"


def test_non_mapping_config_is_rejected(tmp_path):
    path = tmp_path / "orchestrator.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        OrchestratorConfig.load(path, environ={})


def test_contract_address_round_trips_through_deployment_record(tmp_path):
    record = tmp_path / "nested" / "MJVS.yaml"

    save_contract_address(record, ADDRESS.lower())

    assert load_contract_address(record) == ADDRESS
    assert "contract_address" in record.read_text(encoding="utf-8")


def test_missing_deployment_record_raises_configuration_missing(tmp_path):
    with pytest.raises(ConfigurationMissing, match="deploy"):
        load_contract_address(tmp_path / "MJVS.yaml")

    empty = tmp_path / "empty.yaml"
    empty.write_text("other: 1\n", encoding="utf-8")
    with pytest.raises(ConfigurationMissing):
        load_contract_address(empty)


def test_resolve_contract_address_prefers_explicit_value(tmp_path):
    record = tmp_path / "MJVS.yaml"
    save_contract_address(record, ADDRESS)

    resolved = OrchestratorConfig(deployment_file=record).resolve_contract_address()
    assert resolved.require_contract_address() == ADDRESS

    other = "0x" + "11" * 20
    explicit = OrchestratorConfig(deployment_file=record, contract_address=other)
    assert explicit.resolve_contract_address().contract_address == other


def test_require_contract_address_without_record(tmp_path):
    config = OrchestratorConfig(deployment_file=tmp_path / "MJVS.yaml")

    with pytest.raises(ConfigurationMissing):
        config.require_contract_address()
    with pytest.raises(ConfigurationMissing):
        config.resolve_contract_address()
