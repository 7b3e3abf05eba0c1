"""Aggregate decrypted tallies into comparable percentages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import TallyIntegrityError
from .models import GRADE_COUNT, CandidateResult, Grade

logger = logging.getLogger(__name__)


def majority_grade(counts: Sequence[int]) -> Optional[Grade]:
    """Return the majority-judgment grade (lower median) or ``None`` with no votes."""

    total = sum(counts)
    if total == 0:
        return None
    cumulative = 0
    for index, count in enumerate(counts):
        cumulative += count
        if 2 * cumulative > total:
            return Grade.from_index(index)
    return Grade.from_index(GRADE_COUNT - 1)  # pragma: no cover - unreachable with total > 0


def majority_gauge(counts: Sequence[int]) -> float:
    """Signed share of voters on the larger side of the majority grade.

    Positive when more voters grade the candidate strictly better than its
    majority grade than strictly worse; used to order candidates sharing a
    majority grade.
    """

    grade = majority_grade(counts)
    if grade is None:
        return 0.0
    total = sum(counts)
    better = sum(counts[: grade.index]) / total
    worse = sum(counts[grade.index + 1 :]) / total
    return better if better > worse else -worse


@dataclass(frozen=True)
class CandidateSummary:
    candidate_id: int
    counts: Tuple[int, ...]
    licit_votes: int
    percentages: Tuple[float, ...]
    majority_grade: Optional[Grade]
    gauge: float


@dataclass(frozen=True)
class AggregatedResults:
    """Per-candidate percentages sharing one normalisation total."""

    candidates: List[CandidateSummary]
    total_licit_votes: int
    total_vote_count: int

    @property
    def per_candidate_percentages(self) -> List[Tuple[float, ...]]:
        return [candidate.percentages for candidate in self.candidates]

    @property
    def illicit_votes(self) -> int:
        return max(0, self.total_vote_count - self.total_licit_votes)

    @property
    def has_discrepancy(self) -> bool:
        return self.total_vote_count > self.total_licit_votes

    def matrix(self) -> List[List[int]]:
        """Return the ``candidates x grades`` count matrix."""

        return [list(candidate.counts) for candidate in self.candidates]

    def ranking(self) -> List[CandidateSummary]:
        """Candidates ordered by majority grade, best first, then by gauge."""

        def key(candidate: CandidateSummary) -> Tuple[int, float, int]:
            index = candidate.majority_grade.index if candidate.majority_grade is not None else GRADE_COUNT
            return (index, -candidate.gauge, candidate.candidate_id)

        return sorted(self.candidates, key=key)


class ResultAggregator:
    """Cross-check tallies against the vote count and normalise them."""

    def aggregate(self, results: Sequence[CandidateResult], total_vote_count: int) -> AggregatedResults:
        """Aggregate ``results`` using the first candidate's licit total as denominator.

        Raises :class:`TallyIntegrityError` when a candidate's tally exceeds
        ``total_vote_count``.  A vote count above the licit total (malformed
        ballots) is reported but left unresolved.
        """

        if not results:
            raise ValueError("At least one candidate result is required")
        if total_vote_count < 0:
            raise ValueError("total_vote_count must be non-negative")

        for result in results:
            if result.licit_votes > total_vote_count:
                logger.error(
                    "Defective tally for candidate %d: %d grades for %d votes",
                    result.candidate_id,
                    result.licit_votes,
                    total_vote_count,
                )
                raise TallyIntegrityError(
                    f"Candidate {result.candidate_id} tallies {result.licit_votes} grades "
                    f"but only {total_vote_count} votes were cast",
                    candidate_id=result.candidate_id,
                    licit_votes=result.licit_votes,
                    vote_count=total_vote_count,
                )

        denominator = results[0].licit_votes
        summaries = []
        for result in results:
            if result.licit_votes != denominator:
                logger.warning(
                    "Candidate %d has %d licit votes, normalising on %d",
                    result.candidate_id,
                    result.licit_votes,
                    denominator,
                )
            percentages = tuple(
                100.0 * count / denominator if denominator else 0.0 for count in result.counts
            )
            summaries.append(
                CandidateSummary(
                    candidate_id=result.candidate_id,
                    counts=result.counts,
                    licit_votes=result.licit_votes,
                    percentages=percentages,
                    majority_grade=majority_grade(result.counts),
                    gauge=majority_gauge(result.counts),
                )
            )

        aggregated = AggregatedResults(
            candidates=summaries,
            total_licit_votes=denominator,
            total_vote_count=total_vote_count,
        )
        if aggregated.has_discrepancy:
            logger.warning(
                "Total number of votes (%d) exceeds licit votes (%d): %d illicit or malformed ballots",
                total_vote_count,
                denominator,
                aggregated.illicit_votes,
            )
        return aggregated


def aggregate(results: Sequence[CandidateResult], total_vote_count: int) -> AggregatedResults:
    return ResultAggregator().aggregate(results, total_vote_count)


__all__ = [
    "AggregatedResults",
    "CandidateSummary",
    "ResultAggregator",
    "aggregate",
    "majority_gauge",
    "majority_grade",
]
