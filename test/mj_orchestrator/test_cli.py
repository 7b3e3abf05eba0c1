import httpx
from typer.testing import CliRunner

from mj_orchestrator import commands
from mj_orchestrator.ballots import IdentityPool
from mj_orchestrator.cli import app
from mj_orchestrator.config import OrchestratorConfig, save_contract_address
from mj_orchestrator.encryption import RelayerEncryptionClient
from mj_orchestrator.oracle import RelayerOracleClient
from mj_orchestrator.relayer import RelayerError, RelayerRPC
from mj_orchestrator.simulation import SimulatedLedger


runner = CliRunner()


def test_demo_prints_results_and_writes_chart(tmp_path):
    output = tmp_path / "chart.png"

    result = runner.invoke(app, ["demo", "--voters", "4", "--illicit", "1", "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert output.exists()
    assert "Total number of votes" in result.output


def test_commands_without_deployment_record_fail_cleanly(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["get-results", "0"])

    assert result.exit_code == 1
    assert "ConfigurationMissing" in result.output


def _relayer_runtime(handler):
    ledger = SimulatedLedger()
    rpc = RelayerRPC("http://relayer.test", transport=httpx.MockTransport(handler))
    return commands.Runtime.assemble(
        OrchestratorConfig().with_contract_address(ledger.address),
        ledger,
        IdentityPool(ledger.identities),
        RelayerEncryptionClient(rpc),
        RelayerOracleClient(rpc),
    )


def test_relayer_outage_is_reported_without_traceback(monkeypatch):
    runtime = _relayer_runtime(lambda request: httpx.Response(503))

    async def connect(config):
        await runtime.lifecycle.create_election(2, "Board")
        return runtime

    monkeypatch.setattr(commands.Runtime, "connect", staticmethod(connect))

    result = runner.invoke(app, ["random-vote", "0"])

    assert result.exit_code == 1
    assert not isinstance(result.exception, RelayerError)
    assert "RelayerError" in result.output
    assert "503" in result.output


def test_unreachable_node_is_reported_without_traceback(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    save_contract_address(tmp_path / "MJVS.yaml", "0x5FbDB2315678afecb367f032d93F642f64180aa3")
    monkeypatch.setenv("MJ_RPC_URL", "http://127.0.0.1:9")

    result = runner.invoke(app, ["create-election", "--candidates", "2"])

    assert result.exit_code == 1
    assert "LedgerUnavailableError" in result.output
