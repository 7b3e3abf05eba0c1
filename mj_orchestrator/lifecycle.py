"""Election creation and voting-state management."""

from __future__ import annotations

import logging

from .correlator import EventCorrelator, fields_equal
from .ledger import LedgerClient, ensure_success
from .models import Election, Receipt

logger = logging.getLogger(__name__)

NEW_ELECTION_EVENT = "newElection"


class ElectionLifecycleManager:
    """Create elections and open or close their voting period."""

    def __init__(
        self,
        ledger: LedgerClient,
        correlator: EventCorrelator,
        *,
        identity: str,
        creation_timeout: float = 60.0,
    ) -> None:
        self._ledger = ledger
        self._correlator = correlator
        self._identity = identity
        self._creation_timeout = creation_timeout

    @property
    def identity(self) -> str:
        return self._identity

    async def create_election(self, candidate_number: int, label: str) -> Election:
        """Create an election and return it once its creation event is observed.

        The contract assigns the id; it is only known from the ``newElection``
        event emitted for this owner and label.  A failed receipt or a missing
        event both leave the caller without a usable election.
        """

        if candidate_number < 1:
            raise ValueError("candidate_number must be at least 1")
        logger.info("Creating a new election with %d candidates labeled %r", candidate_number, label)

        wait = await self._correlator.register(
            NEW_ELECTION_EVENT,
            fields_equal(electionOwner=self._identity, electionLabel=label),
            timeout=self._creation_timeout,
        )
        try:
            receipt = await self._ledger.transact("createElection", candidate_number, label, sender=self._identity)
            ensure_success(receipt, "createElection", "Create election Tx failed.")
        except BaseException:
            wait.cancel()
            raise
        event = await wait

        election = Election(
            id=int(event["electionId"]),
            label=str(event["electionLabel"]),
            candidate_number=candidate_number,
            voting_open=False,
            vote_count=0,
            owner=str(event["electionOwner"]),
            block_number=int(event["blockNumber"]),
        )
        logger.info(
            "Election created, ID: %d, Block number: %s",
            election.id,
            election.block_number,
            extra={"election_id": election.id, "action": "createElection"},
        )
        return election

    async def set_voting_state(self, election_id: int, open: bool) -> Receipt:
        """Open or close voting; only the election owner is accepted by the contract."""

        logger.info("Setting voting state on election %d to %s", election_id, open)
        receipt = await self._ledger.transact("setVotingState", election_id, open, sender=self._identity)
        return ensure_success(
            receipt,
            "setVotingState",
            "Set voting state Tx failed (Are you sure you are the owner of this election?).",
        )

    async def get_election(self, election_id: int, *, label: str = "") -> Election:
        """Read the on-ledger view of an election."""

        candidate_number = int(await self._ledger.call("getCandidateNumber", election_id))
        voting_open = bool(await self._ledger.call("getVotingState", election_id))
        vote_count = int(await self._ledger.call("getVoteCount", election_id))
        return Election(
            id=election_id,
            label=label,
            candidate_number=candidate_number,
            voting_open=voting_open,
            vote_count=vote_count,
        )


__all__ = ["ElectionLifecycleManager", "NEW_ELECTION_EVENT"]
