"""Demo contract data for empty stores.

A fresh installation shows a handful of sample contracts so the review,
signature and dashboard screens have something to display.
"""

from datetime import date, datetime, timezone
from typing import List, TYPE_CHECKING

from loguru import logger

from workflow.models import Contract, ContractStatus

if TYPE_CHECKING:
    from storage.contract_store import ContractStore

DEMO_CREATOR = "admin@demo.com"


def demo_contracts() -> List[Contract]:
    """Build the demo collection, most recent first."""
    return [
        Contract(
            id="contract_1",
            title="Software Development Agreement",
            client="TechCorp Inc.",
            description="Custom software development project",
            value="150000",
            category="Service",
            status=ContractStatus.ACTIVE,
            template_id="temp_2",
            template_name="Service Agreement",
            content="Populated contract content...",
            start_date=date(2024, 1, 15),
            end_date=date(2024, 12, 31),
            created_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
            created_by=DEMO_CREATOR,
        ),
        Contract(
            id="contract_2",
            title="Employee NDA",
            client="John Smith",
            description="Non-disclosure agreement for new hire",
            category="NDA",
            status=ContractStatus.ACTIVE,
            template_id="temp_3",
            template_name="NDA Template",
            content="Populated NDA content...",
            start_date=date(2024, 2, 1),
            end_date=date(2025, 2, 1),
            created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
            created_by=DEMO_CREATOR,
        ),
        Contract(
            id="contract_3",
            title="Office Lease Agreement",
            client="ABC Properties Ltd.",
            description="Commercial office space rental",
            value="50000",
            category="Lease",
            status=ContractStatus.REVIEW_APPROVAL,
            template_id="temp_5",
            template_name="Lease Agreement",
            content="Populated lease content...",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            created_by=DEMO_CREATOR,
        ),
    ]


def seed_if_empty(store: "ContractStore") -> int:
    """Write the demo collection into ``store`` when it holds no contracts.

    Returns:
        Number of contracts written (0 if the store already had data)
    """
    if store.load_all():
        logger.debug("Store already populated, skipping demo seed")
        return 0

    contracts = demo_contracts()
    store.save_all(contracts)
    logger.info(f"Seeded {len(contracts)} demo contracts")
    return len(contracts)
