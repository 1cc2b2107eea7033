from datetime import date, datetime, timezone

import pytest

from workflow.models import Contract, ContractStatus
from workflow.status import contract_view, days_until_expiry, derive_display_status, expiry_label

TODAY = date(2025, 6, 1)


def make_contract(status=ContractStatus.SIGNED, start=None, end=None, **extra) -> Contract:
    return Contract(
        id="contract_status",
        title="Status check",
        created_by="alice@corp.com",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        status=status,
        start_date=start,
        end_date=end,
        **extra,
    )


@pytest.mark.parametrize(
    "end, expected",
    [
        (date(2025, 5, 31), ContractStatus.EXPIRED),
        (date(2025, 6, 1), ContractStatus.EXPIRING),
        (date(2025, 7, 1), ContractStatus.EXPIRING),
        (date(2025, 7, 2), ContractStatus.ACTIVE),
        (None, ContractStatus.ACTIVE),
    ],
)
def test_executed_contract_status_follows_end_date(end, expected):
    contract = make_contract(start=date(2025, 1, 1), end=end)

    assert derive_display_status(contract, TODAY) == expected


def test_signed_contract_not_started_yet():
    contract = make_contract(start=date(2025, 9, 1), end=date(2026, 9, 1))

    assert derive_display_status(contract, TODAY) == ContractStatus.SIGNED


@pytest.mark.parametrize(
    "status",
    [ContractStatus.DRAFT, ContractStatus.REVIEW_APPROVAL, ContractStatus.WAITING_FOR_SIGNATURE],
)
def test_pre_signature_status_passes_through(status):
    contract = make_contract(status=status, end=date(2020, 1, 1))

    assert derive_display_status(contract, TODAY) == status


def test_custom_expiring_window():
    contract = make_contract(end=date(2025, 6, 20))

    assert derive_display_status(contract, TODAY, expiring_window_days=7) == ContractStatus.ACTIVE
    assert derive_display_status(contract, TODAY, expiring_window_days=30) == ContractStatus.EXPIRING


def test_days_until_expiry():
    assert days_until_expiry(make_contract(end=date(2025, 6, 11)), TODAY) == 10
    assert days_until_expiry(make_contract(end=date(2025, 5, 30)), TODAY) == -2
    assert days_until_expiry(make_contract(), TODAY) is None


@pytest.mark.parametrize(
    "days, label",
    [(None, "No end date"), (-3, "Expired"), (0, "Today"), (1, "1 day"), (12, "12 days")],
)
def test_expiry_label(days, label):
    assert expiry_label(days) == label


def test_contract_view_adds_display_fields():
    contract = make_contract(start=date(2025, 1, 1), end=date(2025, 6, 15))

    view = contract_view(contract, TODAY)

    assert view["status"] == "signed"
    assert view["displayStatus"] == "expiring"
    assert view["expiresInDays"] == 14
    assert view["expiryLabel"] == "14 days"
    assert view["createdBy"] == "alice@corp.com"


def test_dashboard_counts_relevant_contracts(engine, store, clock):
    today = clock().date()
    contracts = [
        make_contract(start=date(2025, 1, 1), end=date(2026, 1, 1)),
        make_contract(start=date(2025, 1, 1), end=date(2025, 6, 20)),
        make_contract(status=ContractStatus.REVIEW_APPROVAL),
        make_contract(start=date(2024, 1, 1), end=date(2024, 12, 31)),
    ]
    for index, contract in enumerate(contracts):
        contract.id = f"contract_dash_{index}"
    other = make_contract(end=date(2026, 1, 1))
    other.id = "contract_other"
    other.created_by = "zoe@corp.com"
    store.save_all(contracts + [other])

    stats = engine.get_dashboard_stats("alice@corp.com", today)

    assert (stats.active, stats.expiring, stats.pending_approval) == (1, 1, 1)
    assert engine.get_contract_by_id("contract_dash_0").status == ContractStatus.SIGNED


def test_dashboard_counts_contracts_assigned_to_signer(engine, store):
    from workflow.models import SignerInfo

    contract = make_contract(
        start=date(2025, 1, 1),
        end=date(2026, 1, 1),
        signer=SignerInfo(email="erin@corp.com", status="signed"),
    )
    store.save_all([contract])

    assert engine.get_dashboard_stats("erin@corp.com").active == 1
