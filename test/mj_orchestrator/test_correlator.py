import asyncio
import gc

import pytest

from mj_orchestrator.correlator import EventCorrelator, EventWaitToken, fields_equal, match_all
from mj_orchestrator.errors import EventPollingError, EventTimeoutError
from mj_orchestrator.simulation import SimulatedLedger


class RecordingLedger(SimulatedLedger):
    def __init__(self) -> None:
        super().__init__()
        self.ranges: list[tuple[int, int]] = []

    async def get_logs(self, from_block, to_block):
        self.ranges.append((from_block, to_block))
        return await super().get_logs(from_block, to_block)


def test_wait_resolves_on_first_matching_event_after_registration():
    async def scenario():
        ledger = SimulatedLedger()
        ledger.emit("voteDecrypted", blockNumber=1, electionId=0, candidateId=0)
        correlator = EventCorrelator(ledger, poll_interval=0.001)

        wait = await correlator.register(
            "voteDecrypted", fields_equal(electionId=0, candidateId=0), timeout=2.0
        )
        ledger.emit("voteDecrypted", blockNumber=0, electionId=0, candidateId=1)
        ledger.emit("newElection", blockNumber=0, electionOwner="0x0", electionLabel="x", electionId=0)
        expected_block = ledger.emit("voteDecrypted", blockNumber=0, electionId=0, candidateId=0)
        ledger.emit("voteDecrypted", blockNumber=0, electionId=0, candidateId=0)

        record = await wait
        assert record.name == "voteDecrypted"
        assert record.block_number == expected_block
        assert record["candidateId"] == 0
        assert wait.token.resolved

    asyncio.run(scenario())


def test_wait_times_out_without_match():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger, poll_interval=0.005)
        ledger.emit("voteDecrypted", blockNumber=1, electionId=0, candidateId=0)

        with pytest.raises(EventTimeoutError) as excinfo:
            await correlator.wait_for_event("voteDecrypted", timeout=0.05)
        assert excinfo.value.event_name == "voteDecrypted"

    asyncio.run(scenario())


def test_absolute_deadline_in_the_past_still_polls_once():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger, poll_interval=0.005)
        deadline = correlator.deadline_in(-1.0)

        with pytest.raises(EventTimeoutError) as excinfo:
            await correlator.wait_for_event("newElection", deadline=deadline)
        assert excinfo.value.deadline == deadline

    asyncio.run(scenario())


def test_watermark_advances_and_blocks_are_never_rescanned():
    async def scenario():
        ledger = RecordingLedger()
        correlator = EventCorrelator(ledger)
        token = EventWaitToken("voteDecrypted", match_all, last_observed_block=0, deadline=0.0)

        ledger.mine_empty_block()
        ledger.emit("newElection", blockNumber=2, electionOwner="0x0", electionLabel="", electionId=0)
        assert await correlator.poll_once(token) is None
        assert token.last_observed_block == 2

        assert await correlator.poll_once(token) is None
        ledger.mine_empty_block()
        assert await correlator.poll_once(token) is None
        assert ledger.ranges == [(1, 2), (3, 3)]
        assert token.last_observed_block == 3

    asyncio.run(scenario())


def test_resolved_token_never_delivers_a_second_match():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger)
        token = EventWaitToken("voteDecrypted", match_all, last_observed_block=0, deadline=0.0)

        ledger.emit("voteDecrypted", blockNumber=1, electionId=0, candidateId=0)
        first = await correlator.poll_once(token)
        assert first is not None

        ledger.emit("voteDecrypted", blockNumber=2, electionId=0, candidateId=1)
        assert await correlator.poll_once(token) is None

    asyncio.run(scenario())


def test_polling_error_aborts_the_wait():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger, poll_interval=0.001)
        wait = await correlator.register("voteDecrypted", timeout=2.0)
        ledger.log_query_error = ConnectionError("node unavailable")
        ledger.mine_empty_block()

        with pytest.raises(EventPollingError) as excinfo:
            await wait
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    asyncio.run(scenario())


def test_cancelled_wait_stops_polling():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger, poll_interval=0.001)
        wait = await correlator.register("voteDecrypted", timeout=2.0)
        wait.cancel()

        with pytest.raises(asyncio.CancelledError):
            await wait
        assert wait.cancelled()
        assert not wait.token.resolved

    asyncio.run(scenario())


def test_register_requires_a_deadline():
    async def scenario():
        correlator = EventCorrelator(SimulatedLedger())
        with pytest.raises(ValueError):
            await correlator.register("voteDecrypted")

    asyncio.run(scenario())


def test_fields_equal_compares_addresses_case_insensitively():
    predicate = fields_equal(electionOwner="0xAbC0000000000000000000000000000000000001", electionId=3)

    assert predicate({"electionOwner": "0xabc0000000000000000000000000000000000001", "electionId": 3})
    assert not predicate({"electionOwner": "0xabc0000000000000000000000000000000000002", "electionId": 3})
    assert not predicate({"electionOwner": "0xabc0000000000000000000000000000000000001", "electionId": 4})
    assert not predicate({"electionId": 3})


def test_wait_can_start_from_an_earlier_block():
    async def scenario():
        ledger = SimulatedLedger()
        trigger_block = ledger.mine_empty_block()
        ledger.emit("voteDecrypted", blockNumber=0, electionId=2, candidateId=0)
        correlator = EventCorrelator(ledger, poll_interval=0.001)

        wait = await correlator.register(
            "voteDecrypted", fields_equal(electionId=2), timeout=2.0, after_block=trigger_block
        )
        record = await wait
        assert record.block_number == trigger_block + 1

    asyncio.run(scenario())


def test_predicate_failure_aborts_the_wait_as_polling_error():
    async def scenario():
        ledger = SimulatedLedger()
        correlator = EventCorrelator(ledger, poll_interval=0.001)
        wait = await correlator.register("voteDecrypted", fields_equal(electionId=1), timeout=2.0)
        ledger.emit("voteDecrypted", blockNumber=1, electionId="not-a-number", candidateId=0)

        with pytest.raises(EventPollingError) as excinfo:
            await wait
        assert isinstance(excinfo.value.__cause__, ValueError)

    asyncio.run(scenario())


def test_fields_equal_keeps_labels_case_sensitive():
    predicate = fields_equal(electionLabel="0xBoard")

    assert predicate({"electionLabel": "0xBoard"})
    assert not predicate({"electionLabel": "0xboard"})


def test_cancelling_an_expired_wait_leaves_no_unretrieved_error():
    async def scenario():
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        correlator = EventCorrelator(SimulatedLedger(), poll_interval=0.001)

        wait = await correlator.register("newElection", timeout=0.0)
        while not wait.done():
            await asyncio.sleep(0.001)
        wait.cancel()
        del wait
        gc.collect()

        assert reported == []

    asyncio.run(scenario())
