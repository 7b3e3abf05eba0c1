import pytest
from pydantic import ValidationError

from mj_orchestrator.models import (
    GRADE_LABELS,
    CandidateDecryptionState,
    CandidateResult,
    DecryptionRequest,
    DecryptionStatus,
    Election,
    Grade,
    is_licit_grade,
)


def test_grades_are_single_bits_ordered_best_first():
    assert [grade.value for grade in Grade] == [1, 2, 4, 8, 16, 32, 64]
    assert [grade.label for grade in Grade] == list(GRADE_LABELS)
    assert Grade.from_index(3) is Grade.MEDIUM
    assert Grade.from_value(64) is Grade.AWFUL


@pytest.mark.parametrize("value", [0, 3, 48, 128, -1])
def test_illicit_values_are_not_grades(value):
    assert not is_licit_grade(value)
    with pytest.raises(ValueError):
        Grade.from_value(value)


def test_candidate_result_requires_seven_counts():
    result = CandidateResult(candidate_id=0, counts=(1, 0, 2, 0, 0, 0, 1))

    assert result.licit_votes == 4
    assert result.count_for(Grade.GOOD) == 2
    assert result.as_dict()["Awful"] == 1
    with pytest.raises(ValidationError):
        CandidateResult(candidate_id=0, counts=(1, 2))
    with pytest.raises(ValidationError):
        CandidateResult(candidate_id=0, counts=(0, 0, 0, 0, 0, 0, -1))


def test_election_needs_a_candidate():
    with pytest.raises(ValidationError):
        Election(id=0, label="Board", candidate_number=0)


def test_decryption_request_records_its_history():
    request = DecryptionRequest(election_id=1, candidate_id=0)

    request.transition(CandidateDecryptionState.REQUEST_SENT)
    request.transition(CandidateDecryptionState.AWAITING_ORACLE)
    assert request.status is DecryptionStatus.PENDING
    request.transition(CandidateDecryptionState.TIMED_OUT)

    assert request.status is DecryptionStatus.TIMED_OUT
    assert request.history == [
        CandidateDecryptionState.IDLE,
        CandidateDecryptionState.REQUEST_SENT,
        CandidateDecryptionState.AWAITING_ORACLE,
    ]
