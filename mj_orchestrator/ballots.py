"""Ballot packaging and submission."""

from __future__ import annotations

import logging
import random
from typing import Iterator, List, Optional, Sequence, Tuple

from .encryption import EncryptionSDK
from .ledger import LedgerClient, ensure_success
from .models import GRADES, Ballot, Grade, Receipt

logger = logging.getLogger(__name__)


class IdentityPool:
    """Explicit, ordered set of voter identities used to sign ballots."""

    def __init__(self, identities: Sequence[str]) -> None:
        if not identities:
            raise ValueError("IdentityPool requires at least one identity")
        self._identities = list(identities)
        self._cursor = 0

    @classmethod
    async def from_ledger(cls, ledger: LedgerClient) -> "IdentityPool":
        return cls(await ledger.accounts())

    def __len__(self) -> int:
        return len(self._identities)

    def __iter__(self) -> Iterator[str]:
        return iter(self._identities)

    def __getitem__(self, index: int) -> str:
        return self._identities[index]

    def next(self) -> str:
        """Return identities in order, one per call, cycling through the pool."""

        identity = self._identities[self._cursor % len(self._identities)]
        self._cursor += 1
        return identity


def random_grades(candidate_number: int, rng: random.Random) -> List[Grade]:
    return [rng.choice(GRADES) for _ in range(candidate_number)]


class BallotSubmitter:
    """Submit one ballot per voter, all candidates in a single transaction."""

    def __init__(self, ledger: LedgerClient, encryption: Optional[EncryptionSDK] = None) -> None:
        self._ledger = ledger
        self._encryption = encryption

    async def candidate_number(self, election_id: int) -> int:
        return int(await self._ledger.call("getCandidateNumber", election_id))

    async def submit_ballot(
        self,
        election_id: int,
        ciphertexts: Sequence[bytes],
        proof: bytes,
        *,
        voter: str,
        candidate_number: Optional[int] = None,
    ) -> Receipt:
        """Submit ``ciphertexts`` (one per candidate) with their validity proof.

        Ciphertext content is opaque here; a malformed grade encoding is only
        detectable later from the tallies.  Failures are not retried.
        """

        expected = candidate_number if candidate_number is not None else await self.candidate_number(election_id)
        if len(ciphertexts) != expected:
            raise ValueError(f"Ballot has {len(ciphertexts)} ciphertexts, election {election_id} has {expected} candidates")
        ballot = Ballot(election_id=election_id, voter=voter, handles=list(ciphertexts), proof=proof)
        receipt = await self._ledger.transact("vote", ballot.election_id, ballot.handles, ballot.proof, sender=voter)
        ensure_success(receipt, "vote", "Vote Tx failed.")
        logger.info("Vote tx status : %d", receipt.status, extra={"election_id": election_id, "voter": voter})
        return receipt

    async def cast_ballot(self, election_id: int, values: Sequence[int], *, voter: str) -> Receipt:
        """Encrypt cleartext grade values for ``voter`` and submit them."""

        if self._encryption is None:
            raise RuntimeError("An encryption SDK is required to cast cleartext ballots")
        candidate_number = await self.candidate_number(election_id)
        if len(values) != candidate_number:
            raise ValueError(f"Expected {candidate_number} grades, got {len(values)}")
        logger.info("Encrypting parameters...")
        encrypted = await self._encryption.encrypt(self._ledger.address, voter, [int(value) for value in values])
        return await self.submit_ballot(
            election_id, encrypted.handles, encrypted.proof, voter=voter, candidate_number=candidate_number
        )

    async def cast_random_ballot(
        self, election_id: int, *, voter: str, rng: random.Random
    ) -> Tuple[List[Grade], Receipt]:
        candidate_number = await self.candidate_number(election_id)
        logger.info("Election %d has %d candidates. Generating random votes.", election_id, candidate_number)
        grades = random_grades(candidate_number, rng)
        for index, grade in enumerate(grades):
            logger.info("Candidate %d grade : %s", index, grade.label)
        receipt = await self.cast_ballot(election_id, [grade.value for grade in grades], voter=voter)
        return grades, receipt


__all__ = ["BallotSubmitter", "IdentityPool", "random_grades"]
