"""In-memory ledger, encryption SDK and oracle used for tests and offline runs.

The simulated contract mirrors the election contract's observable rules:
owner-only voting toggles, one ballot per identity, bitwise grade tallying
(a multi-bit plaintext lands in several buckets) and the ``newElection`` /
``voteDecrypted`` events.  Every transaction mines exactly one block.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence, Set, Tuple

from web3 import Web3

from .errors import BusinessRuleRejection
from .models import GRADE_COUNT, EncryptedInput, EventRecord, Receipt

logger = logging.getLogger(__name__)

ALREADY_VOTED = "This address have already voted."
VOTING_CLOSED = "Voting is not open for this election."
NOT_OWNER = "Only the election owner can change the voting state."
UNKNOWN_ELECTION = "Unknown election."
BAD_BALLOT_SIZE = "Ballot size does not match the candidate number."
INVALID_PROOF = "Invalid input proof."
BAD_CANDIDATE = "Unknown candidate."


def simulated_address(seed: str) -> str:
    return Web3.to_checksum_address("0x" + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:40])


def simulated_identities(count: int) -> List[str]:
    return [simulated_address(f"identity-{index}") for index in range(count)]


def _input_proof(contract_address: str, user_address: str, handles: Sequence[bytes]) -> bytes:
    digest = hashlib.sha256()
    digest.update(contract_address.lower().encode("utf-8"))
    digest.update(user_address.lower().encode("utf-8"))
    for handle in handles:
        digest.update(bytes(handle))
    return digest.digest()


@dataclass
class SimulatedElection:
    id: int
    owner: str
    label: str
    candidate_number: int
    voting_open: bool = False
    voters: Set[str] = field(default_factory=set)
    tallies: List[List[int]] = field(default_factory=list)
    results: Dict[int, Tuple[int, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.tallies:
            self.tallies = [[0] * GRADE_COUNT for _ in range(self.candidate_number)]


class SimulatedLedger:
    """:class:`~mj_orchestrator.ledger.LedgerClient` over an in-memory chain."""

    def __init__(self, *, identities: Optional[Sequence[str]] = None, address: Optional[str] = None) -> None:
        self._address = address or simulated_address("election-contract")
        self._identities = list(identities) if identities is not None else simulated_identities(20)
        self._blocks: List[List[Dict[str, Any]]] = [[]]
        self._tx_counter = 0
        self._ciphertexts: Dict[bytes, int] = {}
        self._fail_next: Dict[str, int] = {}
        self.elections: List[SimulatedElection] = []
        self.pending_decryptions: Deque[Tuple[int, int]] = deque()
        self.dropped_events: Set[str] = set()
        self.log_query_error: Optional[Exception] = None
        self.transactions: List[Tuple[str, Tuple[Any, ...], str, int]] = []

    # LedgerClient -----------------------------------------------------------
    @property
    def address(self) -> str:
        return self._address

    @property
    def identities(self) -> List[str]:
        return list(self._identities)

    @property
    def head(self) -> int:
        return len(self._blocks) - 1

    async def accounts(self) -> List[str]:
        return list(self._identities)

    async def block_number(self) -> int:
        await asyncio.sleep(0)
        return self.head

    async def transact(self, function_name: str, *args: Any, sender: str) -> Receipt:
        await asyncio.sleep(0)
        handler = getattr(self, f"_tx_{function_name}", None)
        if handler is None:
            raise AttributeError(f"Contract has no function {function_name}")
        if self._fail_next.get(function_name):
            self._fail_next[function_name] -= 1
            receipt = self._mine([], status=0)
            self.transactions.append((function_name, args, sender, 0))
            logger.debug("Simulated failed receipt for %s", function_name)
            return receipt
        try:
            events = handler(sender, *args)
        except _Revert as exc:
            raise BusinessRuleRejection(exc.reason, action=function_name) from None
        self.transactions.append((function_name, args, sender, 1))
        return self._mine(events)

    async def call(self, function_name: str, *args: Any) -> Any:
        await asyncio.sleep(0)
        handler = getattr(self, f"_view_{function_name}", None)
        if handler is None:
            raise AttributeError(f"Contract has no view {function_name}")
        try:
            return handler(*args)
        except _Revert as exc:
            raise BusinessRuleRejection(exc.reason, action=function_name) from None

    async def get_logs(self, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        if self.log_query_error is not None:
            raise self.log_query_error
        logs: List[Dict[str, Any]] = []
        for number in range(max(from_block, 0), min(to_block, self.head) + 1):
            logs.extend(self._blocks[number])
        return logs

    def decode_log(self, log: Dict[str, Any]) -> Optional[EventRecord]:
        if "event" not in log:
            return None
        return EventRecord(
            name=log["event"],
            fields=dict(log["args"]),
            block_number=log["blockNumber"],
            log_index=log["logIndex"],
            tx_hash=log["transactionHash"],
        )

    # Test hooks -------------------------------------------------------------
    def fail_next(self, function_name: str, times: int = 1) -> None:
        """Make the next ``times`` calls of ``function_name`` mine a failed receipt."""

        self._fail_next[function_name] = self._fail_next.get(function_name, 0) + times

    def emit(self, event_name: str, **fields: Any) -> int:
        """Mine a block containing one arbitrary event; return its block number."""

        self._mine([(event_name, fields)])
        return self.head

    def mine_empty_block(self) -> int:
        self._mine([])
        return self.head

    def register_ciphertext(self, handle: bytes, value: int) -> None:
        self._ciphertexts[bytes(handle)] = int(value)

    def fulfill_pending(self) -> int:
        """Decrypt every queued request, emitting one ``voteDecrypted`` event each."""

        fulfilled = 0
        while self.pending_decryptions:
            election_id, candidate_id = self.pending_decryptions.popleft()
            election = self.elections[election_id]
            election.results[candidate_id] = tuple(election.tallies[candidate_id])
            self._mine(
                [
                    (
                        "voteDecrypted",
                        {"blockNumber": self.head + 1, "electionId": election_id, "candidateId": candidate_id},
                    )
                ]
            )
            fulfilled += 1
        return fulfilled

    # Internals --------------------------------------------------------------
    def _mine(self, events: List[Tuple[str, Dict[str, Any]]], *, status: int = 1) -> Receipt:
        self._tx_counter += 1
        tx_hash = "0x" + hashlib.sha256(f"tx-{self._tx_counter}".encode("utf-8")).hexdigest()
        block_number = self.head + 1
        logs = []
        for index, (name, args) in enumerate(events):
            if name in self.dropped_events:
                continue
            logs.append(
                {
                    "address": self._address,
                    "event": name,
                    "args": dict(args),
                    "blockNumber": block_number,
                    "logIndex": index,
                    "transactionHash": tx_hash,
                }
            )
        self._blocks.append(logs)
        return Receipt(status=status, block_number=block_number, tx_hash=tx_hash)

    def _election(self, election_id: int) -> SimulatedElection:
        if not 0 <= int(election_id) < len(self.elections):
            raise _Revert(UNKNOWN_ELECTION)
        return self.elections[int(election_id)]

    def _tx_createElection(self, sender: str, candidate_number: int, label: str):
        if int(candidate_number) < 1:
            raise _Revert("An election needs at least one candidate.")
        election = SimulatedElection(
            id=len(self.elections), owner=sender, label=label, candidate_number=int(candidate_number)
        )
        self.elections.append(election)
        fields = {
            "blockNumber": self.head + 1,
            "electionOwner": sender,
            "electionLabel": label,
            "electionId": election.id,
        }
        return [("newElection", fields)]

    def _tx_setVotingState(self, sender: str, election_id: int, state: bool):
        election = self._election(election_id)
        if sender.lower() != election.owner.lower():
            raise _Revert(NOT_OWNER)
        election.voting_open = bool(state)
        return []

    def _tx_vote(self, sender: str, election_id: int, handles: Sequence[bytes], proof: bytes):
        election = self._election(election_id)
        if not election.voting_open:
            raise _Revert(VOTING_CLOSED)
        if len(handles) != election.candidate_number:
            raise _Revert(BAD_BALLOT_SIZE)
        if sender.lower() in election.voters:
            raise _Revert(ALREADY_VOTED)
        if bytes(proof) != _input_proof(self._address, sender, handles):
            raise _Revert(INVALID_PROOF)
        values = []
        for handle in handles:
            if bytes(handle) not in self._ciphertexts:
                raise _Revert(INVALID_PROOF)
            values.append(self._ciphertexts[bytes(handle)])
        for candidate_id, value in enumerate(values):
            for grade_index in range(GRADE_COUNT):
                if value & (1 << grade_index):
                    election.tallies[candidate_id][grade_index] += 1
        election.voters.add(sender.lower())
        return []

    def _tx_requestResult(self, sender: str, election_id: int, candidate_id: int):
        election = self._election(election_id)
        if not 0 <= int(candidate_id) < election.candidate_number:
            raise _Revert(BAD_CANDIDATE)
        self.pending_decryptions.append((election.id, int(candidate_id)))
        return []

    def _view_getCandidateNumber(self, election_id: int) -> int:
        return self._election(election_id).candidate_number

    def _view_getVoteCount(self, election_id: int) -> int:
        return len(self._election(election_id).voters)

    def _view_getVotingState(self, election_id: int) -> bool:
        return self._election(election_id).voting_open

    def _view_getCandidateResult(self, election_id: int, candidate_id: int) -> List[int]:
        election = self._election(election_id)
        if not 0 <= int(candidate_id) < election.candidate_number:
            raise _Revert(BAD_CANDIDATE)
        return list(election.results.get(int(candidate_id), (0,) * GRADE_COUNT))


class _Revert(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SimulatedEncryption:
    """Encryption SDK stand-in whose handles only the simulated ledger can open."""

    def __init__(self, ledger: SimulatedLedger) -> None:
        self._ledger = ledger
        self._nonce = 0

    async def encrypt(self, contract_address: str, user_address: str, values: Sequence[int]) -> EncryptedInput:
        await asyncio.sleep(0)
        handles = []
        for value in values:
            self._nonce += 1
            handle = hashlib.sha256(f"{contract_address}:{user_address}:{self._nonce}".encode("utf-8")).digest()
            self._ledger.register_ciphertext(handle, int(value) & 0xFF)
            handles.append(handle)
        return EncryptedInput(handles=handles, proof=_input_proof(contract_address, user_address, handles))


class SimulatedOracle:
    """Oracle stand-in servicing queued requests on the simulated ledger.

    With ``responsive=False`` it never signals completion; ``emit_events=False``
    completes without emitting fulfilment events.
    """

    def __init__(self, ledger: SimulatedLedger, *, responsive: bool = True, emit_events: bool = True) -> None:
        self._ledger = ledger
        self.responsive = responsive
        self.emit_events = emit_events
        self.completions = 0

    async def await_completion(self) -> None:
        if not self.responsive:
            await asyncio.Event().wait()
        await asyncio.sleep(0)
        if self.emit_events:
            self._ledger.fulfill_pending()
        else:
            self._ledger.pending_decryptions.clear()
        self.completions += 1


__all__ = [
    "ALREADY_VOTED",
    "SimulatedElection",
    "SimulatedEncryption",
    "SimulatedLedger",
    "SimulatedOracle",
    "simulated_address",
    "simulated_identities",
]
