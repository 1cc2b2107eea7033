from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from loguru import logger

from storage.contract_store import InMemoryContractStore
from workflow.engine import ContractWorkflowEngine
from workflow.models import ContractDraft

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

AUTHOR = "alice@corp.com"
REVIEWER_1 = "bob@corp.com"
REVIEWER_2 = "dave@corp.com"
APPROVER = "carol@corp.com"
SIGNER = "erin@corp.com"


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks added by code under test so they don't outlive it."""
    yield
    logger.remove()


class FixedClock:
    """Deterministic engine clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="function")
def clock():
    return FixedClock()


@pytest.fixture(scope="function")
def store():
    return InMemoryContractStore()


@pytest.fixture(scope="function")
def engine(store, clock):
    ids = count(1)
    return ContractWorkflowEngine(
        store,
        clock=clock,
        id_factory=lambda: f"contract_test_{next(ids)}",
    )


@pytest.fixture
def make_draft():
    def _make(**overrides) -> ContractDraft:
        data = {
            "title": "Master Services Agreement",
            "created_by": AUTHOR,
            "client": "Globex",
            "value": "25000",
            "category": "Service",
            "content": "Services are provided as described.",
        }
        data.update(overrides)
        return ContractDraft(**data)

    return _make


@pytest.fixture
def draft_contract(engine, make_draft):
    """A freshly created draft."""
    result = engine.create_contract(make_draft())
    assert result.success, result.message
    return result.contract


@pytest.fixture
def contract_in_review(engine, draft_contract):
    """Draft submitted to two reviewers and one approver."""
    result = engine.submit_for_review(draft_contract.id, [REVIEWER_1, REVIEWER_2], APPROVER)
    assert result.success, result.message
    return result.contract


@pytest.fixture
def approved_contract(engine, contract_in_review):
    """Contract with all reviews done and approval granted."""
    engine.mark_as_reviewed(contract_in_review.id, REVIEWER_1)
    engine.mark_as_reviewed(contract_in_review.id, REVIEWER_2)
    result = engine.approve_contract(contract_in_review.id, APPROVER)
    assert result.success, result.message
    return result.contract


class FailingStore:
    """Store whose reads or writes blow up, for persistence-failure paths."""

    def __init__(self, inner, fail_load: bool = False, fail_save: bool = True):
        self.inner = inner
        self.fail_load = fail_load
        self.fail_save = fail_save

    def load_all(self):
        if self.fail_load:
            raise OSError("disk unavailable")
        return self.inner.load_all()

    def save_all(self, contracts):
        if self.fail_save:
            raise OSError("disk full")
        self.inner.save_all(contracts)
