"""
Contract Workflow Engine - lifecycle and review/approval state machine.

Owns every status transition of a contract:

    draft --submit_for_review--> review_approval
    review_approval --approve_contract (reviews complete)--> waiting_for_signature
    review_approval --request_modification--> draft
    waiting_for_signature --sign_contract / mark_signed--> signed

active/expiring/expired are derived from dates on read (see workflow.status)
and never written by the engine.

Each operation loads the full collection from the store, validates,
mutates the target record in memory and writes the collection back.
"""

import os
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional, TYPE_CHECKING

import msgspec
from loguru import logger

from workflow.error_handling import (
    ConflictError,
    ContractNotFoundError,
    ContractWorkflowError,
    InvalidTransitionError,
    NoReviewersAssignedError,
    NotAssignedReviewerError,
    NotAssignedSignerError,
    ReviewersIncompleteError,
    StoreError,
    WorkflowValidationError,
    workflow_operation,
)
from workflow.logging_config import get_contract_logger, log_workflow_operation
from workflow.models import (
    EXECUTED_STATUSES,
    ApproverInfo,
    Contract,
    ContractDraft,
    ContractStatus,
    DashboardStats,
    ModificationRequest,
    ReviewerInfo,
    SignerInfo,
    WorkflowResult,
)
from workflow.status import DEFAULT_EXPIRING_WINDOW_DAYS, derive_display_status

if TYPE_CHECKING:
    from storage.contract_store import ContractStore


# Fields callers may change through update_contract; everything else belongs to the workflow
EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "client",
    "value",
    "category",
    "template_id",
    "template_name",
    "template_docx_base64",
    "template_file_name",
    "content",
    "field_values",
    "start_date",
    "end_date",
})

REQUESTER_ROLES = ("reviewer", "approver")

# Applies a validated change to a loaded contract and returns the result message
Mutation = Callable[[Contract], str]


def _clean_identity(value: Optional[str]) -> str:
    return (value or "").strip()


def _clean_identities(values: Optional[Iterable[str]]) -> List[str]:
    return [v.strip() for v in values or [] if v and v.strip()]


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


class ContractWorkflowEngine:
    """
    Enforces valid status transitions and reviewer/approver bookkeeping.

    Mutating operations never raise for workflow failures; they return a
    WorkflowResult whose ``error`` names the failure kind. Reads raise
    StoreError if the store itself cannot be read.

    Writes are last-writer-wins over the whole collection. Within one engine
    instance the read-modify-write cycle is serialised by a lock; across
    processes, callers can pass ``expected_version`` to detect lost updates.
    """

    def __init__(
        self,
        store: "ContractStore",
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
    ):
        """Initialize the engine.

        Args:
            store: Persistence store holding the contract collection
            clock: Returns the current UTC time (defaults to the system clock)
            id_factory: Generates new contract ids (defaults to timestamp + random suffix)
            expiring_window_days: Days before the end date a contract counts as expiring
        """
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.id_factory = id_factory or self._generate_contract_id
        self.expiring_window_days = expiring_window_days
        self._lock = threading.RLock()

        logger.info(
            "ContractWorkflowEngine initialized",
            store=type(store).__name__,
            expiring_window_days=expiring_window_days
        )

    # =========================================================================
    # Store access
    # =========================================================================

    def _generate_contract_id(self) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"contract_{millis}_{uuid.uuid4().hex[:9]}"

    def _load(self) -> List[Contract]:
        try:
            return list(self.store.load_all())
        except ContractWorkflowError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to load contracts: {e}") from e

    def _save(self, contracts: List[Contract]) -> None:
        try:
            self.store.save_all(contracts)
        except ContractWorkflowError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to save contracts: {e}") from e

    @staticmethod
    def _find_index(contracts: List[Contract], contract_id: str) -> int:
        for index, contract in enumerate(contracts):
            if contract.id == contract_id:
                return index
        raise ContractNotFoundError(contract_id)

    def _mutate(
        self,
        contract_id: str,
        mutation: Mutation,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Load, locate, apply ``mutation``, bump the version and persist.

        ``mutation`` validates before changing anything; if it raises, the
        loaded copy is discarded and nothing is written.
        """
        with self._lock:
            contracts = self._load()
            index = self._find_index(contracts, contract_id)
            contract = contracts[index]

            if expected_version is not None and contract.version != expected_version:
                raise ConflictError(
                    "Contract was modified by someone else. Reload and try again."
                )

            message = mutation(contract)
            contract.updated_at = self.clock()
            contract.version += 1

            self._save(contracts)

        return WorkflowResult.ok(message, contract)

    # =========================================================================
    # Creation and maintenance
    # =========================================================================

    @log_workflow_operation("create_contract")
    @workflow_operation("Failed to create contract. Please try again.")
    def create_contract(self, draft: ContractDraft) -> WorkflowResult:
        """Create a new contract in ``draft`` status.

        The new record is placed first so listings are most-recent-first.
        """
        if not draft.title.strip():
            raise WorkflowValidationError("Contract title is required")
        if not draft.created_by.strip():
            raise WorkflowValidationError("Contract creator is required")

        with self._lock:
            contracts = self._load()
            existing_ids = {c.id for c in contracts}

            contract_id = self.id_factory()
            attempts = 1
            while contract_id in existing_ids:
                if attempts >= 5:
                    raise ConflictError("Could not allocate a unique contract id")
                contract_id = self.id_factory()
                attempts += 1

            fields = msgspec.structs.asdict(draft)
            # asdict is shallow; the stored record must not share the caller's dict
            fields["field_values"] = dict(draft.field_values)
            contract = Contract(
                **fields,
                id=contract_id,
                created_at=self.clock(),
                status=ContractStatus.DRAFT,
            )
            contracts.insert(0, contract)
            self._save(contracts)

        get_contract_logger(contract.id, "create_contract").info(
            "Contract created", created_by=contract.created_by
        )
        return WorkflowResult.ok("Contract created successfully", contract)

    @log_workflow_operation("update_contract")
    @workflow_operation("Failed to update contract. Please try again.")
    def update_contract(
        self,
        contract_id: str,
        updates: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Change descriptive or payload fields of a contract.

        Workflow-owned fields (status, review sub-state, signer, ids and
        timestamps) cannot be changed here.
        """
        if not updates:
            raise WorkflowValidationError("No updates provided")
        rejected = sorted(set(updates) - EDITABLE_FIELDS)
        if rejected:
            raise WorkflowValidationError(f"Cannot update field(s): {', '.join(rejected)}")

        def apply(contract: Contract) -> str:
            candidate = msgspec.structs.replace(contract, **updates)
            try:
                # Round-trip through builtins so ISO date strings are parsed and types checked
                converted = msgspec.convert(msgspec.to_builtins(candidate), type=Contract)
            except msgspec.ValidationError as e:
                raise WorkflowValidationError(f"Invalid update: {e}") from e
            if not converted.title.strip():
                raise WorkflowValidationError("Contract title is required")

            for field in updates:
                setattr(contract, field, getattr(converted, field))
            return "Contract updated successfully"

        return self._mutate(contract_id, apply, expected_version)

    @log_workflow_operation("delete_contract")
    @workflow_operation("Failed to delete contract. Please try again.")
    def delete_contract(self, contract_id: str) -> WorkflowResult:
        """Remove a contract outright. Independent of the workflow state."""
        with self._lock:
            contracts = self._load()
            index = self._find_index(contracts, contract_id)
            removed = contracts.pop(index)
            self._save(contracts)

        get_contract_logger(contract_id, "delete_contract").info(
            "Contract deleted", status=removed.status.value
        )
        return WorkflowResult.ok("Contract deleted successfully")

    @workflow_operation("Failed to clear contracts. Please try again.")
    def clear_all_contracts(self) -> WorkflowResult:
        with self._lock:
            self._save([])
        logger.warning("All contracts cleared")
        return WorkflowResult.ok("All contracts cleared")

    # =========================================================================
    # Review and approval
    # =========================================================================

    @log_workflow_operation("submit_for_review")
    @workflow_operation("Failed to submit contract for review. Please try again.")
    def submit_for_review(
        self,
        contract_id: str,
        reviewers: Iterable[str],
        approver: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Send a draft to its reviewers and approver.

        Every reviewer starts ``pending``. Duplicate reviewer identities are
        collapsed. Approver/reviewer overlap is not checked here.
        """
        reviewer_emails = _unique(_clean_identities(reviewers))
        approver_email = _clean_identity(approver)
        if not reviewer_emails:
            raise WorkflowValidationError("At least one reviewer is required")
        if not approver_email:
            raise WorkflowValidationError("An approver is required")

        def apply(contract: Contract) -> str:
            if contract.status not in (ContractStatus.DRAFT, ContractStatus.REVIEW_APPROVAL):
                raise InvalidTransitionError(
                    f"Cannot submit a contract in '{contract.status.value}' status for review"
                )
            contract.status = ContractStatus.REVIEW_APPROVAL
            contract.reviewers = [ReviewerInfo(email=email) for email in reviewer_emails]
            contract.approver = ApproverInfo(email=approver_email)
            contract.review_status = "pending"
            contract.approval_status = "pending"
            return "Contract submitted for review and approval"

        return self._mutate(contract_id, apply, expected_version)

    @log_workflow_operation("mark_as_reviewed")
    @workflow_operation("Failed to mark contract as reviewed. Please try again.")
    def mark_as_reviewed(
        self,
        contract_id: str,
        reviewer: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Record one reviewer's completed review and refresh ``review_status``."""
        reviewer_email = _clean_identity(reviewer)

        def apply(contract: Contract) -> str:
            if not contract.reviewers:
                raise NoReviewersAssignedError("No reviewers assigned to this contract")

            entry = next((r for r in contract.reviewers if r.email == reviewer_email), None)
            if entry is None:
                raise NotAssignedReviewerError("You are not assigned as a reviewer for this contract")

            entry.status = "reviewed"
            entry.reviewed_at = self.clock()

            if contract.all_reviewed():
                contract.review_status = "reviewed"
                return "All reviews completed. Contract is ready for approval."

            contract.review_status = "in_review"
            remaining = sum(1 for r in contract.reviewers if r.status != "reviewed")
            return f"Review recorded. Waiting on {remaining} more reviewer(s)."

        return self._mutate(contract_id, apply, expected_version)

    @log_workflow_operation("submit_for_further_review")
    @workflow_operation("Failed to send contract for further review. Please try again.")
    def submit_for_further_review(
        self,
        contract_id: str,
        additional_reviewers: Iterable[str],
        submitted_by: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Append more reviewers and reopen the review round.

        Identities already on the list are not filtered out; callers are
        expected to offer only new reviewers.
        """
        additions = _clean_identities(additional_reviewers)
        if not additions:
            raise WorkflowValidationError("At least one additional reviewer is required")

        def apply(contract: Contract) -> str:
            contract.reviewers = list(contract.reviewers or []) + [
                ReviewerInfo(email=email) for email in additions
            ]
            contract.review_status = "in_review"
            get_contract_logger(contract.id, "submit_for_further_review").info(
                "Further review requested",
                submitted_by=_clean_identity(submitted_by),
                added=len(additions),
            )
            return f"Contract sent for further review to {len(additions)} additional reviewer(s)"

        return self._mutate(contract_id, apply, expected_version)

    @log_workflow_operation("approve_contract")
    @workflow_operation("Failed to approve contract. Please try again.")
    def approve_contract(
        self,
        contract_id: str,
        approver: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Approve a contract and move it to ``waiting_for_signature``.

        All assigned reviewers must have finished. The approver record is
        marked approved only when ``approver`` matches it; approval itself
        does not depend on the match. Repeated approval is not rejected.
        """
        approver_email = _clean_identity(approver)

        def apply(contract: Contract) -> str:
            if contract.reviewers and not contract.all_reviewed():
                raise ReviewersIncompleteError(
                    "All reviewers must complete their review before approval"
                )

            if approver_email and contract.approver and contract.approver.email == approver_email:
                contract.approver.status = "approved"
                contract.approver.approved_at = self.clock()

            contract.status = ContractStatus.WAITING_FOR_SIGNATURE
            contract.approval_status = "approved"
            return "Contract approved and moved to waiting for signature"

        return self._mutate(contract_id, apply, expected_version)

    @log_workflow_operation("request_modification")
    @workflow_operation("Failed to request modification. Please try again.")
    def request_modification(
        self,
        contract_id: str,
        requested_by: str,
        role: str,
        comments: Optional[str],
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Send a contract back to draft with the requester's comments.

        Appends to the modification history and clears the reviewer and
        approver assignments so the workflow restarts.
        """
        requester = _clean_identity(requested_by)
        text = (comments or "").strip()
        if not requester:
            raise WorkflowValidationError("Requester is required")
        if role not in REQUESTER_ROLES:
            raise WorkflowValidationError(f"Role must be one of: {', '.join(REQUESTER_ROLES)}")
        if not text:
            raise WorkflowValidationError("Comments are required when requesting modifications")

        def apply(contract: Contract) -> str:
            contract.modification_requests = list(contract.modification_requests) + [
                ModificationRequest(
                    requested_by=requester,
                    role=role,
                    comments=text,
                    requested_at=self.clock(),
                )
            ]
            contract.status = ContractStatus.DRAFT
            contract.review_status = "changes_requested"
            contract.reviewers = None
            contract.approver = None
            contract.approval_status = None
            return "Modification requested. Contract returned to draft."

        return self._mutate(contract_id, apply, expected_version)

    # =========================================================================
    # Signature
    # =========================================================================

    @log_workflow_operation("submit_for_signature")
    @workflow_operation("Failed to submit contract for signature. Please try again.")
    def submit_for_signature(
        self,
        contract_id: str,
        signer: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Assign the identity expected to sign an approved contract."""
        signer_email = _clean_identity(signer)
        if not signer_email:
            raise WorkflowValidationError("Please select a signer")

        def apply(contract: Contract) -> str:
            if contract.status != ContractStatus.WAITING_FOR_SIGNATURE:
                raise InvalidTransitionError(
                    "Only approved contracts waiting for signature can be sent to a signer"
                )
            contract.signer = SignerInfo(email=signer_email)
            return f"Contract sent to {signer_email} for signature"

        return self._mutate(contract_id, apply, expected_version)

    def _record_signature(
        self,
        contract: Contract,
        signer_email: str,
        signature_image: Optional[str],
    ) -> str:
        if contract.status != ContractStatus.WAITING_FOR_SIGNATURE:
            raise InvalidTransitionError("Only contracts waiting for signature can be signed")
        if contract.signer and contract.signer.email != signer_email:
            raise NotAssignedSignerError("You are not the assigned signer for this contract")

        previous_image = contract.signer.signature_image if contract.signer else None
        contract.signer = SignerInfo(
            email=signer_email,
            status="signed",
            signed_at=self.clock(),
            signature_image=signature_image or previous_image,
        )
        contract.status = ContractStatus.SIGNED
        return "Contract signed successfully"

    @log_workflow_operation("sign_contract")
    @workflow_operation("Failed to sign contract. Please try again.")
    def sign_contract(
        self,
        contract_id: str,
        signer: str,
        signature_image: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Record a captured signature image and mark the contract signed."""
        signer_email = _clean_identity(signer)
        if not signer_email:
            raise WorkflowValidationError("Signer is required")
        if not (signature_image or "").strip():
            raise WorkflowValidationError("A signature is required to sign the contract")

        return self._mutate(
            contract_id,
            lambda contract: self._record_signature(contract, signer_email, signature_image),
            expected_version,
        )

    @log_workflow_operation("mark_signed")
    @workflow_operation("Failed to sign contract. Please try again.")
    def mark_signed(
        self,
        contract_id: str,
        signer: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Mark a contract signed when the signature lives in its XFDF overlay."""
        signer_email = _clean_identity(signer)
        if not signer_email:
            raise WorkflowValidationError("Signer is required")

        return self._mutate(
            contract_id,
            lambda contract: self._record_signature(contract, signer_email, None),
            expected_version,
        )

    @log_workflow_operation("update_contract_xfdf")
    @workflow_operation("Failed to save contract annotations. Please try again.")
    def update_contract_xfdf(
        self,
        contract_id: str,
        xfdf_string: str,
        expected_version: Optional[int] = None,
    ) -> WorkflowResult:
        """Store the viewer's annotation/form overlay. The XFDF is opaque here."""
        if xfdf_string is None:
            raise WorkflowValidationError("XFDF data is required")

        def apply(contract: Contract) -> str:
            if contract.status in EXECUTED_STATUSES:
                raise InvalidTransitionError("Signed contracts can no longer be edited")
            contract.xfdf_string = xfdf_string
            return "Contract annotations saved"

        return self._mutate(contract_id, apply, expected_version)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_all_contracts(self) -> List[Contract]:
        return self._load()

    def get_contract_by_id(self, contract_id: str) -> Optional[Contract]:
        return next((c for c in self._load() if c.id == contract_id), None)

    def get_contracts_created_by_user(self, identity: str) -> List[Contract]:
        return [c for c in self._load() if c.created_by == identity]

    def get_contracts_for_review(self, identity: str) -> List[Contract]:
        """Contracts in review where ``identity`` is a reviewer or the approver."""
        return [
            c for c in self._load()
            if c.status == ContractStatus.REVIEW_APPROVAL
            and (
                identity in c.reviewer_emails()
                or (c.approver is not None and c.approver.email == identity)
            )
        ]

    def get_contracts_for_signature(self, identity: str) -> List[Contract]:
        """Contracts waiting for ``identity`` to sign.

        Without an assigned signer, the contract waits on its creator.
        """
        return [
            c for c in self._load()
            if c.status == ContractStatus.WAITING_FOR_SIGNATURE
            and (c.signer.email if c.signer else c.created_by) == identity
        ]

    def display_status(self, contract: Contract, today: Optional[date] = None) -> ContractStatus:
        return derive_display_status(
            contract,
            today or self.clock().date(),
            self.expiring_window_days,
        )

    def get_dashboard_stats(self, identity: str, today: Optional[date] = None) -> DashboardStats:
        """Count contracts relevant to ``identity`` (creator or signer) by display status."""
        today = today or self.clock().date()
        stats = DashboardStats()

        for contract in self._load():
            is_relevant = contract.created_by == identity or (
                contract.signer is not None and contract.signer.email == identity
            )
            if not is_relevant:
                continue

            status = self.display_status(contract, today)
            if status == ContractStatus.ACTIVE:
                stats.active += 1
            elif status == ContractStatus.EXPIRING:
                stats.expiring += 1
            elif status == ContractStatus.REVIEW_APPROVAL:
                stats.pending_approval += 1

        return stats


def create_workflow_engine(
    store: Optional["ContractStore"] = None,
    expiring_window_days: Optional[int] = None,
    **engine_kwargs: Any,
) -> ContractWorkflowEngine:
    """Factory function to create a ContractWorkflowEngine with environment-based configuration.

    Args:
        store: Contract store (builds one from the environment if not provided)
        expiring_window_days: Expiry window (uses EXPIRING_WINDOW_DAYS if not provided)
        **engine_kwargs: Passed through to ContractWorkflowEngine

    Returns:
        Configured ContractWorkflowEngine instance
    """
    if store is None:
        from storage.store_manager import create_contract_store
        store = create_contract_store()

    if expiring_window_days is None:
        expiring_window_days = int(os.getenv("EXPIRING_WINDOW_DAYS", str(DEFAULT_EXPIRING_WINDOW_DAYS)))

    return ContractWorkflowEngine(
        store=store,
        expiring_window_days=expiring_window_days,
        **engine_kwargs,
    )
