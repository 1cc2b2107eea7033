"""
Data Models - msgspec Structs for the contract workflow.

These models define the contract record kept in the Persistence Store and
the result objects returned by the workflow engine. Using msgspec provides:
- Fast JSON serialization/deserialization
- Type validation at runtime
- camelCase wire names matching the stored collection format
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import msgspec
from msgspec import Struct


class ContractStatus(str, Enum):
    """Lifecycle status of a contract. Exactly one holds at any time."""
    DRAFT = "draft"
    REVIEW_APPROVAL = "review_approval"
    WAITING_FOR_SIGNATURE = "waiting_for_signature"
    SIGNED = "signed"
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"


# Statuses reached only after a signature has been recorded
EXECUTED_STATUSES = frozenset({
    ContractStatus.SIGNED,
    ContractStatus.ACTIVE,
    ContractStatus.EXPIRING,
    ContractStatus.EXPIRED,
})


class ErrorKind(str, Enum):
    """Failure tag carried by an unsuccessful WorkflowResult."""
    NOT_FOUND = "not_found"
    NO_REVIEWERS_ASSIGNED = "no_reviewers_assigned"
    NOT_ASSIGNED_REVIEWER = "not_assigned_reviewer"
    NOT_ASSIGNED_SIGNER = "not_assigned_signer"
    REVIEWERS_INCOMPLETE = "reviewers_incomplete"
    VALIDATION_ERROR = "validation_error"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"
    STORE_WRITE_FAILURE = "store_write_failure"


ReviewerStatus = Literal["pending", "reviewed"]
ApproverStatus = Literal["pending", "approved"]
SignerStatus = Literal["pending", "signed"]
ReviewStatus = Literal["pending", "in_review", "reviewed", "changes_requested"]
ApprovalStatus = Literal["pending", "approved"]
RequesterRole = Literal["reviewer", "approver"]


class ReviewerInfo(Struct, rename="camel", kw_only=True):
    """A reviewer assigned to a contract."""
    email: str
    status: ReviewerStatus = "pending"
    reviewed_at: Optional[datetime] = None
    comments: Optional[str] = None


class ApproverInfo(Struct, rename="camel", kw_only=True):
    """The single approver assigned to a contract."""
    email: str
    status: ApproverStatus = "pending"
    approved_at: Optional[datetime] = None
    comments: Optional[str] = None


class SignerInfo(Struct, rename="camel", kw_only=True):
    """Signer identity and the captured signature artifact."""
    email: str
    status: SignerStatus = "pending"
    signed_at: Optional[datetime] = None
    signature_image: Optional[str] = None  # base64 data URL


class ModificationRequest(Struct, rename="camel", kw_only=True):
    """Audit entry written each time a reviewer or approver sends a contract back."""
    requested_by: str
    role: RequesterRole
    comments: str
    requested_at: datetime


class ContractDraft(Struct, rename="camel", kw_only=True):
    """Caller-supplied data for a new contract."""
    title: str
    created_by: str
    description: str = ""
    client: str = ""
    value: str = ""
    category: str = ""
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    template_docx_base64: Optional[str] = None
    template_file_name: Optional[str] = None
    content: Optional[str] = None
    field_values: Dict[str, str] = {}
    xfdf_string: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class Contract(Struct, rename="camel", kw_only=True):
    """Complete contract record persisted in the contract collection."""
    id: str
    title: str
    created_by: str
    created_at: datetime
    status: ContractStatus = ContractStatus.DRAFT
    description: str = ""
    client: str = ""
    value: str = ""
    category: str = ""

    # Template info
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    template_docx_base64: Optional[str] = None
    template_file_name: Optional[str] = None

    # Document payload
    content: Optional[str] = None
    field_values: Dict[str, str] = {}
    xfdf_string: Optional[str] = None

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    updated_at: Optional[datetime] = None

    # Review & approval sub-state
    reviewers: Optional[List[ReviewerInfo]] = None
    approver: Optional[ApproverInfo] = None
    review_status: Optional[ReviewStatus] = None
    approval_status: Optional[ApprovalStatus] = None
    modification_requests: List[ModificationRequest] = []

    signer: Optional[SignerInfo] = None
    version: int = 0

    @property
    def document_format(self) -> Literal["xfdf", "template", "text"]:
        """Which payload representation is authoritative for this contract."""
        if self.xfdf_string:
            return "xfdf"
        if self.template_docx_base64:
            return "template"
        return "text"

    def reviewer_emails(self) -> List[str]:
        return [r.email for r in self.reviewers or []]

    def all_reviewed(self) -> bool:
        return bool(self.reviewers) and all(r.status == "reviewed" for r in self.reviewers)


class WorkflowResult(Struct, rename="camel", omit_defaults=True):
    """Uniform outcome of every mutating workflow operation.

    Successful results carry the updated contract; failures carry an
    ErrorKind so callers can branch without parsing the message.
    """
    success: bool
    message: str
    contract: Optional[Contract] = None
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: str, contract: Optional[Contract] = None) -> "WorkflowResult":
        return cls(success=True, message=message, contract=contract)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "WorkflowResult":
        return cls(success=False, message=message, error=kind)

    def to_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self)


class DashboardStats(Struct, rename="camel"):
    """Per-user contract counts shown on the dashboard."""
    active: int = 0
    expiring: int = 0
    pending_approval: int = 0


def encode_contracts(contracts: List[Contract]) -> bytes:
    """Serialize a contract collection to its stored JSON form."""
    return msgspec.json.encode(contracts)


def decode_contracts(payload: bytes | str) -> List[Contract]:
    """Deserialize a stored JSON collection."""
    return msgspec.json.decode(payload, type=List[Contract])
