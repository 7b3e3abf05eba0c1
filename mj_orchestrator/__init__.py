"""Client-side orchestration for confidential majority-judgment elections.

This package correlates ledger transactions with the events they cause,
drives the per-candidate decryption workflow through an external oracle, and
aggregates the decrypted grade tallies.
"""

from .aggregation import AggregatedResults, ResultAggregator, aggregate
from .ballots import BallotSubmitter, IdentityPool
from .config import OrchestratorConfig
from .correlator import EventCorrelator, EventWait, EventWaitToken
from .decryption import DecryptionOrchestrator
from .errors import (
    BusinessRuleRejection,
    ConfigurationMissing,
    EventPollingError,
    EventTimeoutError,
    LedgerUnavailableError,
    OracleTimeoutError,
    OrchestratorError,
    TallyIntegrityError,
    TransactionFailedError,
)
from .lifecycle import ElectionLifecycleManager
from .models import CandidateResult, DecryptionRequest, Election, EventRecord, Grade, Receipt

__all__ = [
    "AggregatedResults",
    "BallotSubmitter",
    "BusinessRuleRejection",
    "CandidateResult",
    "ConfigurationMissing",
    "DecryptionOrchestrator",
    "DecryptionRequest",
    "Election",
    "ElectionLifecycleManager",
    "EventCorrelator",
    "EventPollingError",
    "EventRecord",
    "EventTimeoutError",
    "EventWait",
    "EventWaitToken",
    "LedgerUnavailableError",
    "Grade",
    "IdentityPool",
    "OracleTimeoutError",
    "OrchestratorConfig",
    "OrchestratorError",
    "Receipt",
    "ResultAggregator",
    "TallyIntegrityError",
    "TransactionFailedError",
    "aggregate",
]
