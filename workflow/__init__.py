"""Contract lifecycle workflow - models, engine and supporting services."""

from workflow.models import (
    ContractStatus,
    ErrorKind,
    ReviewerInfo,
    ApproverInfo,
    SignerInfo,
    ModificationRequest,
    ContractDraft,
    Contract,
    WorkflowResult,
    DashboardStats,
)

from workflow.logging_config import (
    setup_logging,
    get_contract_logger,
    log_workflow_operation,
)

from workflow.error_handling import (
    ContractWorkflowError,
    ContractNotFoundError,
    NoReviewersAssignedError,
    NotAssignedReviewerError,
    NotAssignedSignerError,
    ReviewersIncompleteError,
    WorkflowValidationError,
    InvalidTransitionError,
    ConflictError,
    StoreError,
    RetryConfig,
    STORE_RETRY_CONFIG,
    retry_with_backoff,
    handle_errors,
    workflow_operation,
)

from workflow.status import (
    days_until_expiry,
    derive_display_status,
    expiry_label,
    contract_view,
)

from workflow.engine import (
    ContractWorkflowEngine,
    create_workflow_engine,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "ContractStatus",
    "ErrorKind",
    "ReviewerInfo",
    "ApproverInfo",
    "SignerInfo",
    "ModificationRequest",
    "ContractDraft",
    "Contract",
    "WorkflowResult",
    "DashboardStats",
    # Logging
    "setup_logging",
    "get_contract_logger",
    "log_workflow_operation",
    # Error Handling
    "ContractWorkflowError",
    "ContractNotFoundError",
    "NoReviewersAssignedError",
    "NotAssignedReviewerError",
    "NotAssignedSignerError",
    "ReviewersIncompleteError",
    "WorkflowValidationError",
    "InvalidTransitionError",
    "ConflictError",
    "StoreError",
    "RetryConfig",
    "STORE_RETRY_CONFIG",
    "retry_with_backoff",
    "handle_errors",
    "workflow_operation",
    # Display status
    "days_until_expiry",
    "derive_display_status",
    "expiry_label",
    "contract_view",
    # Engine
    "ContractWorkflowEngine",
    "create_workflow_engine",
]
