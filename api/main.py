"""
FastAPI Backend for the Contract Lifecycle Workflow.

This module provides the REST API layer over the workflow engine:
- Contract creation, listing, update and deletion
- Review, approval and modification-request transitions
- Signature assignment and signing
- Per-user review/signature queues and dashboard counts

Architecture:
    Client -> FastAPI -> ContractWorkflowEngine -> ContractStore

Every mutating endpoint answers with the engine's result shape
``{success, message, contract?, error?}``; the HTTP status reflects the
error kind.
"""

import os
import threading
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import msgspec
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from api.security import (
    get_security_headers,
    log_security_audit,
    sanitize_contract_data,
    validate_environment_security,
)
from workflow.engine import ContractWorkflowEngine, create_workflow_engine
from workflow.error_handling import ContractWorkflowError
from workflow.logging_config import setup_logging
from workflow.models import Contract, ContractDraft, ErrorKind, WorkflowResult
from workflow.status import contract_view

load_dotenv()


# =============================================================================
# FastAPI Application Setup
# =============================================================================

app = FastAPI(
    title="Contract Lifecycle Workflow",
    description="Contract creation, review/approval routing and signature tracking",
    version="1.0.0",
)

# CORS configuration for frontend communication
cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8000"
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    """Inject security headers (CSP, X-Frame-Options, etc.) into all responses."""
    response = await call_next(request)
    security_headers = get_security_headers()
    for header, value in security_headers.items():
        response.headers[header] = value
    return response


# =============================================================================
# Engine Singleton
# =============================================================================

engine: Optional[ContractWorkflowEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> ContractWorkflowEngine:
    """Lazy initialization of the workflow engine singleton.

    Sync endpoints run in worker threads; the lock keeps concurrent first
    requests from building separate engines.
    """
    global engine
    if engine is None:
        with _engine_lock:
            if engine is None:
                engine = create_workflow_engine()
                logger.info("Workflow engine initialized")
    return engine


# =============================================================================
# Request Models
# =============================================================================


class CamelModel(BaseModel):
    """Accepts camelCase (wire) or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VersionedRequest(CamelModel):
    """Optional optimistic-concurrency token for mutating requests."""

    expected_version: Optional[int] = None


class ContractCreateRequest(CamelModel):
    """Data for a new draft contract."""

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


class ContractUpdateRequest(VersionedRequest):
    """Partial update of descriptive and payload fields."""

    title: Optional[str] = None
    description: Optional[str] = None
    client: Optional[str] = None
    value: Optional[str] = None
    category: Optional[str] = None
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    template_docx_base64: Optional[str] = None
    template_file_name: Optional[str] = None
    content: Optional[str] = None
    field_values: Optional[Dict[str, str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class SubmitReviewRequest(VersionedRequest):
    reviewers: List[str] = []
    approver: str = ""


class ReviewRequest(VersionedRequest):
    reviewer: str


class FurtherReviewRequest(VersionedRequest):
    additional_reviewers: List[str] = []
    submitted_by: str = ""


class ApproveRequest(VersionedRequest):
    approver: Optional[str] = None


class ModificationRequestBody(VersionedRequest):
    requested_by: str
    role: str
    comments: Optional[str] = None


class SubmitSignatureRequest(VersionedRequest):
    signer: str


class SignRequest(VersionedRequest):
    signer: str
    signature_image: str = ""


class MarkSignedRequest(VersionedRequest):
    signer: str


class XfdfRequest(VersionedRequest):
    xfdf_string: str


# =============================================================================
# Response Helpers
# =============================================================================

ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.STORE_WRITE_FAILURE: 503,
}


def _contract_view(wf: ContractWorkflowEngine, contract: Contract) -> Dict[str, Any]:
    return contract_view(contract, wf.clock().date(), wf.expiring_window_days)


def _result_response(
    wf: ContractWorkflowEngine,
    result: WorkflowResult,
    success_status: int = 200,
) -> JSONResponse:
    body = result.to_dict()
    if result.contract is not None:
        body["contract"] = _contract_view(wf, result.contract)

    if result.success:
        status_code = success_status
    else:
        status_code = ERROR_STATUS_CODES.get(result.error, 400)
    return JSONResponse(status_code=status_code, content=body)


def _failure_response(kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(kind, 400),
        content=WorkflowResult.fail(kind, message).to_dict(),
    )


@app.exception_handler(ContractWorkflowError)
async def workflow_error_handler(request: Request, exc: ContractWorkflowError):
    """Reads surface store failures as exceptions; render them in the result shape."""
    logger.error(
        "Request failed",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )
    return _failure_response(exc.kind, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies get the same result shape as engine validation failures."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = first.get("msg", "Invalid request")
    message = f"{field}: {reason}" if field else reason

    logger.warning(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        error_count=len(errors),
    )
    return _failure_response(ErrorKind.VALIDATION_ERROR, message)


# =============================================================================
# API Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Contract Lifecycle Workflow API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "contracts": "/contracts",
            "reviews": "/reviews?identity=",
            "signatures": "/signatures?identity=",
            "dashboard": "/dashboard?identity=",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/contracts")
def list_contracts(
    created_by: Optional[str] = None,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    """List all contracts, or only those created by ``created_by``."""
    if created_by:
        contracts = wf.get_contracts_created_by_user(created_by)
    else:
        contracts = wf.get_all_contracts()
    return {
        "contracts": [_contract_view(wf, c) for c in contracts],
        "count": len(contracts),
    }


@app.post("/contracts")
def create_contract(
    request: ContractCreateRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    """Create a new draft contract."""
    draft = ContractDraft(**request.model_dump())
    result = wf.create_contract(draft)
    response = _result_response(wf, result, success_status=201)
    if result.success:
        logger.debug(
            "Contract created via API",
            contract=sanitize_contract_data(msgspec.to_builtins(result.contract)),
        )
    return response


@app.get("/contracts/{contract_id}")
def get_contract(contract_id: str, wf: ContractWorkflowEngine = Depends(get_engine)):
    """Fetch a single contract."""
    contract = wf.get_contract_by_id(contract_id)
    if contract is None:
        return _failure_response(ErrorKind.NOT_FOUND, "Contract not found")
    return {"success": True, "contract": _contract_view(wf, contract)}


@app.patch("/contracts/{contract_id}")
def update_contract(
    contract_id: str,
    request: ContractUpdateRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    """Update descriptive fields of a contract."""
    updates = request.model_dump(exclude_unset=True)
    expected_version = updates.pop("expected_version", None)
    result = wf.update_contract(contract_id, updates, expected_version=expected_version)
    return _result_response(wf, result)


@app.delete("/contracts/{contract_id}")
def delete_contract(contract_id: str, wf: ContractWorkflowEngine = Depends(get_engine)):
    """Delete a contract (admin/cleanup path)."""
    result = wf.delete_contract(contract_id)
    if result.success:
        log_security_audit("contract_deleted", contract_id)
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/submit-review")
def submit_for_review(
    contract_id: str,
    request: SubmitReviewRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.submit_for_review(
        contract_id,
        request.reviewers,
        request.approver,
        expected_version=request.expected_version,
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/review")
def mark_as_reviewed(
    contract_id: str,
    request: ReviewRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.mark_as_reviewed(
        contract_id, request.reviewer, expected_version=request.expected_version
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/further-review")
def submit_for_further_review(
    contract_id: str,
    request: FurtherReviewRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.submit_for_further_review(
        contract_id,
        request.additional_reviewers,
        request.submitted_by,
        expected_version=request.expected_version,
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/approve")
def approve_contract(
    contract_id: str,
    request: ApproveRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.approve_contract(
        contract_id, request.approver, expected_version=request.expected_version
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/request-modification")
def request_modification(
    contract_id: str,
    request: ModificationRequestBody,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.request_modification(
        contract_id,
        request.requested_by,
        request.role,
        request.comments,
        expected_version=request.expected_version,
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/submit-signature")
def submit_for_signature(
    contract_id: str,
    request: SubmitSignatureRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.submit_for_signature(
        contract_id, request.signer, expected_version=request.expected_version
    )
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/sign")
def sign_contract(
    contract_id: str,
    request: SignRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.sign_contract(
        contract_id,
        request.signer,
        request.signature_image,
        expected_version=request.expected_version,
    )
    if result.success:
        log_security_audit("contract_signed", contract_id, {"signer": request.signer})
    return _result_response(wf, result)


@app.post("/contracts/{contract_id}/mark-signed")
def mark_signed(
    contract_id: str,
    request: MarkSignedRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.mark_signed(
        contract_id, request.signer, expected_version=request.expected_version
    )
    if result.success:
        log_security_audit("contract_signed", contract_id, {"signer": request.signer})
    return _result_response(wf, result)


@app.put("/contracts/{contract_id}/xfdf")
def update_contract_xfdf(
    contract_id: str,
    request: XfdfRequest,
    wf: ContractWorkflowEngine = Depends(get_engine),
):
    result = wf.update_contract_xfdf(
        contract_id, request.xfdf_string, expected_version=request.expected_version
    )
    return _result_response(wf, result)


@app.get("/reviews")
def contracts_for_review(identity: str, wf: ContractWorkflowEngine = Depends(get_engine)):
    """Contracts awaiting ``identity`` as reviewer or approver."""
    contracts = wf.get_contracts_for_review(identity)
    return {
        "contracts": [_contract_view(wf, c) for c in contracts],
        "count": len(contracts),
    }


@app.get("/signatures")
def contracts_for_signature(identity: str, wf: ContractWorkflowEngine = Depends(get_engine)):
    """Contracts waiting for ``identity`` to sign."""
    contracts = wf.get_contracts_for_signature(identity)
    return {
        "contracts": [_contract_view(wf, c) for c in contracts],
        "count": len(contracts),
    }


@app.get("/dashboard")
def dashboard(identity: str, wf: ContractWorkflowEngine = Depends(get_engine)):
    """Active, expiring and pending-approval counts for ``identity``."""
    return msgspec.to_builtins(wf.get_dashboard_stats(identity))


# =============================================================================
# Lifecycle Events
# =============================================================================


@app.on_event("startup")
async def startup_event():
    """Configure logging, check the environment and build the engine."""
    setup_logging(
        log_dir=os.getenv("LOG_DIR", "logs"),
        level=os.getenv("LOG_LEVEL", "INFO"),
        rotation="100 MB",
        retention="30 days",
    )

    security = validate_environment_security()
    for warning in security["warnings"]:
        logger.warning(f"Security check: {warning}")
    for error in security["errors"]:
        logger.error(f"Security check: {error}")

    get_engine()
    logger.info("Contract Workflow API started")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Contract Workflow API shutting down")
