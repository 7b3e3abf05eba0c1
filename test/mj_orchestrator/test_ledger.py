import pytest
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError

from mj_orchestrator.config import DEFAULT_ABI_PATH
from mj_orchestrator.errors import TransactionFailedError
from mj_orchestrator.ledger import Web3LedgerClient, ensure_success, event_topics, load_abi, revert_reason
from mj_orchestrator.models import Receipt

ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def test_revert_reason_strips_node_prefix():
    exc = ContractLogicError("execution reverted: This address have already voted.")

    assert revert_reason(exc) == "This address have already voted."
    assert revert_reason(RuntimeError("plain failure")) == "plain failure"


def test_event_topics_cover_election_events():
    topics = event_topics(load_abi(DEFAULT_ABI_PATH))

    assert sorted(topics.values()) == ["newElection", "voteDecrypted"]
    expected = Web3.to_hex(Web3.keccak(text="voteDecrypted(uint256,uint256,uint256)")).lower()
    assert topics[expected] == "voteDecrypted"


def test_load_abi_accepts_compiled_artifacts(tmp_path):
    artifact = tmp_path / "MJVS.json"
    artifact.write_text('{"abi": [{"type": "event", "name": "x", "inputs": []}], "bytecode": "0x"}', encoding="utf-8")

    assert load_abi(artifact)[0]["name"] == "x"

    broken = tmp_path / "broken.json"
    broken.write_text('"nope"', encoding="utf-8")
    with pytest.raises(ValueError):
        load_abi(broken)


def test_ensure_success_raises_on_failed_receipt():
    ok = Receipt(status=1, block_number=3)
    assert ensure_success(ok, "vote") is ok

    with pytest.raises(TransactionFailedError, match="Vote Tx failed.") as excinfo:
        ensure_success(Receipt(status=0, block_number=4), "vote", "Vote Tx failed.")
    assert excinfo.value.action == "vote"
    assert excinfo.value.receipt.block_number == 4


def test_decode_log_ignores_foreign_logs():
    web3 = Web3(HTTPProvider("http://127.0.0.1:8545"))
    client = Web3LedgerClient(web3, ADDRESS, load_abi(DEFAULT_ABI_PATH))

    assert client.address == ADDRESS
    assert client.decode_log({"topics": []}) is None
    assert client.decode_log({"topics": ["0x" + "00" * 32]}) is None
