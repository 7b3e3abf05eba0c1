"""Failure taxonomy shared by every orchestration stage."""

from __future__ import annotations

from typing import Any, Optional


class OrchestratorError(RuntimeError):
    """Base class for failures that abort a top-level operation."""


class ConfigurationMissing(OrchestratorError):
    """Raised when no deployed contract address is on record."""

    def __init__(self, message: str, *, key: str = "contract_address") -> None:
        super().__init__(message)
        self.key = key


class TransactionFailedError(OrchestratorError):
    """Raised when a transaction reverts or its receipt reports failure."""

    def __init__(self, message: str, *, action: str, receipt: Optional[Any] = None) -> None:
        super().__init__(message)
        self.action = action
        self.receipt = receipt


class BusinessRuleRejection(TransactionFailedError):
    """Raised when the contract rejects a call for a business reason.

    The contract's reason string is kept verbatim in :attr:`reason`.
    """

    def __init__(self, reason: str, *, action: str) -> None:
        super().__init__(f"{action} rejected by contract: {reason}", action=action)
        self.reason = reason


class LedgerUnavailableError(OrchestratorError):
    """Raised when the JSON-RPC node cannot be reached or serves another chain."""

    def __init__(self, message: str, *, rpc_url: str) -> None:
        super().__init__(message)
        self.rpc_url = rpc_url


class EventTimeoutError(OrchestratorError):
    """Raised when an expected ledger event is not observed before its deadline."""

    def __init__(self, message: str, *, event_name: str, deadline: float) -> None:
        super().__init__(message)
        self.event_name = event_name
        self.deadline = deadline


class EventPollingError(OrchestratorError):
    """Raised when fetching or decoding logs fails while a wait is pending."""

    def __init__(self, message: str, *, event_name: str) -> None:
        super().__init__(message)
        self.event_name = event_name


class OracleTimeoutError(OrchestratorError):
    """Raised when the decryption oracle never signals completion."""

    def __init__(self, message: str, *, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


class TallyIntegrityError(OrchestratorError):
    """Raised when a decrypted tally exceeds the election's vote count."""

    def __init__(self, message: str, *, candidate_id: int, licit_votes: int, vote_count: int) -> None:
        super().__init__(message)
        self.candidate_id = candidate_id
        self.licit_votes = licit_votes
        self.vote_count = vote_count


__all__ = [
    "BusinessRuleRejection",
    "ConfigurationMissing",
    "EventPollingError",
    "EventTimeoutError",
    "LedgerUnavailableError",
    "OracleTimeoutError",
    "OrchestratorError",
    "TallyIntegrityError",
    "TransactionFailedError",
]
