"""Shared models for elections, ballots, decryption requests and tallies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Grade(IntEnum):
    """Majority-judgment grades, encoded as single-bit plaintexts."""

    EXCELLENT = 1
    VERY_GOOD = 2
    GOOD = 4
    MEDIUM = 8
    BAD = 16
    VERY_BAD = 32
    AWFUL = 64

    @property
    def label(self) -> str:
        return GRADE_LABELS[self.index]

    @property
    def index(self) -> int:
        return self.value.bit_length() - 1

    @classmethod
    def from_index(cls, index: int) -> "Grade":
        return GRADES[index]

    @classmethod
    def from_value(cls, value: int) -> "Grade":
        """Return the grade for a single-bit plaintext.

        Raises ``ValueError`` for zero or multi-bit ("illicit") values.
        """

        if not is_licit_grade(value):
            raise ValueError(f"{value} is not a single-grade encoding")
        return cls(value)


GRADES: Tuple[Grade, ...] = tuple(Grade)
GRADE_COUNT = len(GRADES)
GRADE_LABELS: Tuple[str, ...] = ("Excellent", "VGood", "Good", "Medium", "Bad", "VBad", "Awful")


def is_licit_grade(value: int) -> bool:
    """Return ``True`` when ``value`` has exactly one of the seven grade bits set."""

    return 0 < value < (1 << GRADE_COUNT) and value & (value - 1) == 0


class Election(BaseModel):
    """An election as seen by this client."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    label: str
    candidate_number: int = Field(..., ge=1)
    voting_open: bool = False
    vote_count: int = Field(default=0, ge=0)
    owner: Optional[str] = None
    block_number: Optional[int] = Field(default=None, ge=0)


class CandidateResult(BaseModel):
    """Decrypted per-grade counts for one candidate, ordered Excellent to Awful."""

    model_config = ConfigDict(frozen=True)

    candidate_id: int = Field(..., ge=0)
    counts: Tuple[int, ...]

    @field_validator("counts")
    @classmethod
    def _check_counts(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if len(value) != GRADE_COUNT:
            raise ValueError(f"expected {GRADE_COUNT} grade counts, got {len(value)}")
        if any(count < 0 for count in value):
            raise ValueError("grade counts must be non-negative")
        return tuple(int(count) for count in value)

    @property
    def licit_votes(self) -> int:
        return sum(self.counts)

    def count_for(self, grade: Grade) -> int:
        return self.counts[grade.index]

    def as_dict(self) -> Dict[str, int]:
        return dict(zip(GRADE_LABELS, self.counts))


@dataclass(frozen=True)
class Receipt:
    """Confirmation returned once a submitted transaction is mined."""

    status: int
    block_number: int
    tx_hash: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class EventRecord:
    """A decoded ledger log entry."""

    name: str
    fields: Dict[str, Any]
    block_number: int
    log_index: int = 0
    tx_hash: str = ""

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]


@dataclass(frozen=True)
class EncryptedInput:
    """Opaque ciphertext handles and the validity proof binding them."""

    handles: List[bytes]
    proof: bytes


@dataclass(frozen=True)
class Ballot:
    """One voter's complete encrypted ballot for an election."""

    election_id: int
    voter: str
    handles: List[bytes]
    proof: bytes


class DecryptionStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    TIMED_OUT = "timed_out"


class CandidateDecryptionState(str, Enum):
    """Per-candidate progress through the decryption workflow."""

    IDLE = "idle"
    REQUEST_SENT = "request_sent"
    AWAITING_ORACLE = "awaiting_oracle"
    FULFILLED = "fulfilled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class DecryptionRequest:
    election_id: int
    candidate_id: int
    status: DecryptionStatus = DecryptionStatus.PENDING
    state: CandidateDecryptionState = CandidateDecryptionState.IDLE
    request_receipt: Optional[Receipt] = None
    fulfillment: Optional[EventRecord] = None
    history: List[CandidateDecryptionState] = field(default_factory=list)

    def transition(self, state: CandidateDecryptionState) -> None:
        self.history.append(self.state)
        self.state = state
        if state is CandidateDecryptionState.FULFILLED:
            self.status = DecryptionStatus.FULFILLED
        elif state is CandidateDecryptionState.TIMED_OUT:
            self.status = DecryptionStatus.TIMED_OUT


__all__ = [
    "Ballot",
    "CandidateDecryptionState",
    "CandidateResult",
    "DecryptionRequest",
    "DecryptionStatus",
    "Election",
    "EncryptedInput",
    "EventRecord",
    "GRADES",
    "GRADE_COUNT",
    "GRADE_LABELS",
    "Grade",
    "Receipt",
    "is_licit_grade",
]
