import pytest

from storage.contract_store import InMemoryContractStore
from workflow.engine import ContractWorkflowEngine
from workflow.error_handling import StoreError
from workflow.models import ContractStatus, ErrorKind

from conftest import APPROVER, REVIEWER_1, REVIEWER_2, FailingStore


MISSING = "contract_missing"


@pytest.mark.parametrize(
    "call",
    [
        lambda e: e.submit_for_review(MISSING, [REVIEWER_1], APPROVER),
        lambda e: e.mark_as_reviewed(MISSING, REVIEWER_1),
        lambda e: e.submit_for_further_review(MISSING, [REVIEWER_2], APPROVER),
        lambda e: e.approve_contract(MISSING, APPROVER),
        lambda e: e.request_modification(MISSING, APPROVER, "approver", "fix"),
        lambda e: e.submit_for_signature(MISSING, "erin@corp.com"),
        lambda e: e.sign_contract(MISSING, "erin@corp.com", "data:image/png;base64,AAA"),
        lambda e: e.mark_signed(MISSING, "erin@corp.com"),
        lambda e: e.update_contract_xfdf(MISSING, "<xfdf/>"),
        lambda e: e.update_contract(MISSING, {"title": "x"}),
        lambda e: e.delete_contract(MISSING),
    ],
)
def test_unknown_contract_is_not_found(engine, call):
    result = call(engine)

    assert not result.success
    assert result.error == ErrorKind.NOT_FOUND
    assert result.message == "Contract not found"
    assert result.contract is None


def test_review_without_reviewers(engine, draft_contract):
    result = engine.mark_as_reviewed(draft_contract.id, REVIEWER_1)

    assert result.error == ErrorKind.NO_REVIEWERS_ASSIGNED
    assert result.message == "No reviewers assigned to this contract"


def test_review_by_unassigned_identity(engine, contract_in_review):
    result = engine.mark_as_reviewed(contract_in_review.id, "mallory@corp.com")

    assert result.error == ErrorKind.NOT_ASSIGNED_REVIEWER
    stored = engine.get_contract_by_id(contract_in_review.id)
    assert [r.status for r in stored.reviewers] == ["pending", "pending"]


@pytest.mark.parametrize(
    "reviewers, approver, message",
    [
        ([], APPROVER, "At least one reviewer is required"),
        (["  "], APPROVER, "At least one reviewer is required"),
        ([REVIEWER_1], "", "An approver is required"),
    ],
)
def test_submit_for_review_validation(engine, draft_contract, reviewers, approver, message):
    result = engine.submit_for_review(draft_contract.id, reviewers, approver)

    assert result.error == ErrorKind.VALIDATION_ERROR
    assert result.message == message
    assert engine.get_contract_by_id(draft_contract.id).status == ContractStatus.DRAFT


def test_submit_for_review_rejected_after_approval(engine, approved_contract):
    result = engine.submit_for_review(approved_contract.id, [REVIEWER_1], APPROVER)

    assert result.error == ErrorKind.INVALID_TRANSITION


def test_further_review_requires_reviewers(engine, contract_in_review):
    result = engine.submit_for_further_review(contract_in_review.id, [], APPROVER)

    assert result.error == ErrorKind.VALIDATION_ERROR


@pytest.mark.parametrize(
    "requested_by, role, comments",
    [
        (APPROVER, "approver", ""),
        (APPROVER, "approver", "   "),
        (APPROVER, "approver", None),
        (APPROVER, "signer", "fix it"),
        ("", "reviewer", "fix it"),
    ],
)
def test_request_modification_validation(engine, contract_in_review, requested_by, role, comments):
    result = engine.request_modification(contract_in_review.id, requested_by, role, comments)

    assert result.error == ErrorKind.VALIDATION_ERROR
    stored = engine.get_contract_by_id(contract_in_review.id)
    assert stored.status == ContractStatus.REVIEW_APPROVAL
    assert stored.modification_requests == []


def test_expected_version_mismatch_is_conflict(engine, draft_contract):
    engine.update_contract(draft_contract.id, {"title": "First edit"})

    result = engine.update_contract(
        draft_contract.id, {"title": "Stale edit"}, expected_version=draft_contract.version
    )

    assert result.error == ErrorKind.CONFLICT
    assert engine.get_contract_by_id(draft_contract.id).title == "First edit"


def test_expected_version_match_succeeds(engine, draft_contract):
    result = engine.submit_for_review(
        draft_contract.id, [REVIEWER_1], APPROVER, expected_version=draft_contract.version
    )

    assert result.success


def test_last_writer_wins_without_version(engine, store, draft_contract):
    stale = store.load_all()
    engine.update_contract(draft_contract.id, {"title": "Fresh edit"})

    # Another writer saves the collection it read before the edit
    stale[0].title = "Stale edit"
    store.save_all(stale)

    assert engine.get_contract_by_id(draft_contract.id).title == "Stale edit"


def test_write_failure_becomes_result(draft_contract, clock):
    inner = InMemoryContractStore([draft_contract])
    engine = ContractWorkflowEngine(FailingStore(inner), clock=clock)

    result = engine.submit_for_review(draft_contract.id, [REVIEWER_1], APPROVER)

    assert not result.success
    assert result.error == ErrorKind.STORE_WRITE_FAILURE
    assert result.message == "Failed to submit contract for review. Please try again."
    assert inner.load_all()[0].status == ContractStatus.DRAFT


def test_create_write_failure(make_draft, clock):
    engine = ContractWorkflowEngine(FailingStore(InMemoryContractStore()), clock=clock)

    result = engine.create_contract(make_draft())

    assert result.error == ErrorKind.STORE_WRITE_FAILURE
    assert result.message == "Failed to create contract. Please try again."


def test_read_failure_raises_store_error(clock):
    engine = ContractWorkflowEngine(
        FailingStore(InMemoryContractStore(), fail_load=True), clock=clock
    )

    with pytest.raises(StoreError):
        engine.get_all_contracts()


def test_create_validation(engine, make_draft):
    assert engine.create_contract(make_draft(title="  ")).error == ErrorKind.VALIDATION_ERROR
    assert engine.create_contract(make_draft(created_by="")).error == ErrorKind.VALIDATION_ERROR
    assert engine.get_all_contracts() == []
