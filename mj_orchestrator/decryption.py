"""Sequential per-candidate decryption workflow.

Each candidate moves through ``IDLE -> REQUEST_SENT -> AWAITING_ORACLE ->
FULFILLED``.  Candidates are processed one at a time in id order: the oracle
and the event index correlate on ``(election_id, candidate_id)`` only, so a
single outstanding request per election keeps fulfilment matching
unambiguous.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .correlator import EventCorrelator, EventWait, fields_equal
from .errors import EventTimeoutError, OracleTimeoutError, OrchestratorError
from .ledger import LedgerClient, ensure_success
from .models import CandidateDecryptionState, CandidateResult, DecryptionRequest
from .oracle import OracleService, await_oracle

logger = logging.getLogger(__name__)

VOTE_DECRYPTED_EVENT = "voteDecrypted"


class DecryptionOrchestrator:
    """Drive decryption of every candidate of one election through the oracle."""

    def __init__(
        self,
        ledger: LedgerClient,
        correlator: EventCorrelator,
        oracle: OracleService,
        *,
        identity: str,
        decryption_timeout: float = 180.0,
        oracle_timeout: float = 180.0,
    ) -> None:
        self._ledger = ledger
        self._correlator = correlator
        self._oracle = oracle
        self._identity = identity
        self._decryption_timeout = decryption_timeout
        self._oracle_timeout = oracle_timeout

    async def decrypt_election(self, election_id: int) -> List[DecryptionRequest]:
        """Decrypt all candidates of ``election_id`` in order.

        Any failure aborts the whole workflow; requests already fulfilled are
        not resumed by a later call.
        """

        candidate_number = int(await self._ledger.call("getCandidateNumber", election_id))
        requests: List[DecryptionRequest] = []
        for candidate_id in range(candidate_number):
            request = DecryptionRequest(election_id=election_id, candidate_id=candidate_id)
            requests.append(request)
            await self.decrypt_candidate(request)
        logger.info("Decrypted %d candidates of election %d", candidate_number, election_id)
        return requests

    async def decrypt_candidate(self, request: DecryptionRequest) -> DecryptionRequest:
        election_id, candidate_id = request.election_id, request.candidate_id
        receipt = await self._ledger.transact("requestResult", election_id, candidate_id, sender=self._identity)
        request.request_receipt = receipt
        request.transition(CandidateDecryptionState.REQUEST_SENT)
        try:
            ensure_success(
                receipt,
                "requestResult",
                f"Request result tx for candidate {candidate_id + 1} on election {election_id} failed.",
            )
        except OrchestratorError:
            request.transition(CandidateDecryptionState.FAILED)
            raise
        logger.info(
            "Request result tx status for candidate %d on election %d : %d",
            candidate_id + 1,
            election_id,
            receipt.status,
        )

        wait: Optional[EventWait] = None
        try:
            wait = await self._correlator.register(
                VOTE_DECRYPTED_EVENT,
                fields_equal(electionId=election_id, candidateId=candidate_id),
                timeout=self._decryption_timeout,
                after_block=receipt.block_number,
            )
            request.transition(CandidateDecryptionState.AWAITING_ORACLE)
            logger.info("Waiting for the oracle to decrypt values...")
            await await_oracle(self._oracle, self._oracle_timeout)
            event = await wait
        except BaseException as exc:
            if wait is not None:
                wait.cancel()
            timed_out = isinstance(exc, (EventTimeoutError, OracleTimeoutError))
            request.transition(CandidateDecryptionState.TIMED_OUT if timed_out else CandidateDecryptionState.FAILED)
            raise

        request.fulfillment = event
        request.transition(CandidateDecryptionState.FULFILLED)
        logger.info(
            "Decryption request fulfilled for candidate %s on election %s. (blockNumber : %s)",
            event["candidateId"],
            event["electionId"],
            event["blockNumber"],
            extra={"election_id": election_id, "candidate_id": candidate_id, "block": event.block_number},
        )
        return request

    async def fetch_results(self, election_id: int) -> List[CandidateResult]:
        """Read the decrypted per-grade counts of every candidate."""

        candidate_number = int(await self._ledger.call("getCandidateNumber", election_id))
        results = []
        for candidate_id in range(candidate_number):
            raw = await self._ledger.call("getCandidateResult", election_id, candidate_id)
            results.append(CandidateResult(candidate_id=candidate_id, counts=tuple(int(count) for count in raw)))
        return results


__all__ = ["DecryptionOrchestrator", "VOTE_DECRYPTED_EVENT"]
