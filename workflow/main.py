#!/usr/bin/env python3
"""Command-line entry point for the contract workflow.

Runs one workflow operation against the configured contract store and
prints the outcome as JSON:

    python -m workflow.main create --title "Lease" --created-by alice@corp.com
    python -m workflow.main submit-review contract_1 --reviewer bob@corp.com --approver carol@corp.com
    python -m workflow.main list --for-review bob@corp.com

Exit code is 0 when the operation succeeded and 1 otherwise.
"""

import argparse
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

import msgspec
from dotenv import load_dotenv
from loguru import logger

from storage.store_manager import SUPPORTED_BACKENDS, create_contract_store
from tools.seed_contracts import seed_if_empty
from workflow.engine import ContractWorkflowEngine, create_workflow_engine
from workflow.error_handling import ContractWorkflowError
from workflow.logging_config import setup_logging
from workflow.models import ContractDraft, ErrorKind, WorkflowResult
from workflow.status import contract_view


def _print_json(payload: Any) -> None:
    print(msgspec.json.format(msgspec.json.encode(payload), indent=2).decode())


def _print_result(engine: ContractWorkflowEngine, result: WorkflowResult) -> int:
    payload = result.to_dict()
    if result.contract is not None:
        payload["contract"] = contract_view(
            result.contract, engine.clock().date(), engine.expiring_window_days
        )
    _print_json(payload)
    return 0 if result.success else 1


def _print_contracts(engine: ContractWorkflowEngine, contracts) -> int:
    today = engine.clock().date()
    _print_json([contract_view(c, today, engine.expiring_window_days) for c in contracts])
    return 0


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Contract lifecycle workflow",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List contracts waiting on a reviewer
  python -m workflow.main list --for-review bob@corp.com

  # Approve after all reviews are in
  python -m workflow.main approve contract_1 --approver carol@corp.com

  # Use a throwaway JSON store
  python -m workflow.main --backend json --store-path /tmp/contracts.json seed
        """
    )

    # Store Configuration
    parser.add_argument(
        "--backend",
        type=str,
        choices=SUPPORTED_BACKENDS,
        default=os.getenv("CONTRACT_STORE_BACKEND", "sqlite"),
        help="Contract store backend (default: from CONTRACT_STORE_BACKEND or sqlite)"
    )

    parser.add_argument(
        "--store-path",
        type=str,
        default=None,
        help="Store file path (default: from CONTRACT_STORE_PATH or contracts.db)"
    )

    # Logging Configuration
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)"
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=os.getenv("LOG_DIR", "logs"),
        help="Directory for log files (default: logs)"
    )

    # Shared by every command that changes a contract
    versioned = argparse.ArgumentParser(add_help=False)
    versioned.add_argument(
        "--expected-version",
        type=int,
        default=None,
        help="Fail with a conflict if the stored version differs"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    listing = commands.add_parser("list", help="List contracts")
    filters = listing.add_mutually_exclusive_group()
    filters.add_argument("--created-by", help="Only contracts created by this identity")
    filters.add_argument("--for-review", help="Contracts awaiting this reviewer or approver")
    filters.add_argument("--for-signature", help="Contracts awaiting this signer")

    show = commands.add_parser("show", help="Show a single contract")
    show.add_argument("contract_id")

    create = commands.add_parser("create", help="Create a draft contract")
    create.add_argument("--title", required=True)
    create.add_argument("--created-by", required=True)
    create.add_argument("--description", default="")
    create.add_argument("--client", default="")
    create.add_argument("--value", default="")
    create.add_argument("--category", default="")
    create.add_argument("--content", default=None)
    create.add_argument("--start-date", type=date.fromisoformat, default=None)
    create.add_argument("--end-date", type=date.fromisoformat, default=None)

    submit = commands.add_parser("submit-review", parents=[versioned], help="Send a draft for review")
    submit.add_argument("contract_id")
    submit.add_argument("--reviewer", action="append", default=[], dest="reviewers")
    submit.add_argument("--approver", default="")

    review = commands.add_parser("review", parents=[versioned], help="Record a completed review")
    review.add_argument("contract_id")
    review.add_argument("--reviewer", required=True)

    further = commands.add_parser(
        "further-review", parents=[versioned], help="Add reviewers and reopen review"
    )
    further.add_argument("contract_id")
    further.add_argument("--reviewer", action="append", default=[], dest="reviewers")
    further.add_argument("--submitted-by", default="")

    approve = commands.add_parser("approve", parents=[versioned], help="Approve a reviewed contract")
    approve.add_argument("contract_id")
    approve.add_argument("--approver", default=None)

    changes = commands.add_parser(
        "request-changes", parents=[versioned], help="Send a contract back to draft"
    )
    changes.add_argument("contract_id")
    changes.add_argument("--requested-by", required=True)
    changes.add_argument("--role", choices=["reviewer", "approver"], required=True)
    changes.add_argument("--comments", default="")

    to_signer = commands.add_parser(
        "submit-signature", parents=[versioned], help="Assign the signer"
    )
    to_signer.add_argument("contract_id")
    to_signer.add_argument("--signer", required=True)

    sign = commands.add_parser("sign", parents=[versioned], help="Sign a contract")
    sign.add_argument("contract_id")
    sign.add_argument("--signer", required=True)
    sign.add_argument(
        "--signature-file",
        default=None,
        help="File holding the signature image data URL (omit when signed in the document overlay)"
    )

    delete = commands.add_parser("delete", help="Delete a contract")
    delete.add_argument("contract_id")

    commands.add_parser("seed", help="Load demo contracts into an empty store")

    stats = commands.add_parser("stats", help="Dashboard counts for an identity")
    stats.add_argument("--identity", required=True)

    return parser.parse_args(argv)


def run_command(args: argparse.Namespace, engine: ContractWorkflowEngine) -> int:
    """Dispatch one parsed command to the engine and print its outcome."""
    command = args.command

    if command == "list":
        if args.created_by:
            return _print_contracts(engine, engine.get_contracts_created_by_user(args.created_by))
        if args.for_review:
            return _print_contracts(engine, engine.get_contracts_for_review(args.for_review))
        if args.for_signature:
            return _print_contracts(engine, engine.get_contracts_for_signature(args.for_signature))
        return _print_contracts(engine, engine.get_all_contracts())

    if command == "show":
        contract = engine.get_contract_by_id(args.contract_id)
        if contract is None:
            logger.error(f"Contract not found: {args.contract_id}")
            _print_json({"success": False, "message": "Contract not found", "error": "not_found"})
            return 1
        _print_json(contract_view(contract, engine.clock().date(), engine.expiring_window_days))
        return 0

    if command == "create":
        draft = ContractDraft(
            title=args.title,
            created_by=args.created_by,
            description=args.description,
            client=args.client,
            value=args.value,
            category=args.category,
            content=args.content,
            start_date=args.start_date,
            end_date=args.end_date,
        )
        return _print_result(engine, engine.create_contract(draft))

    if command == "submit-review":
        result = engine.submit_for_review(
            args.contract_id, args.reviewers, args.approver,
            expected_version=args.expected_version,
        )
    elif command == "review":
        result = engine.mark_as_reviewed(
            args.contract_id, args.reviewer, expected_version=args.expected_version
        )
    elif command == "further-review":
        result = engine.submit_for_further_review(
            args.contract_id, args.reviewers, args.submitted_by,
            expected_version=args.expected_version,
        )
    elif command == "approve":
        result = engine.approve_contract(
            args.contract_id, args.approver, expected_version=args.expected_version
        )
    elif command == "request-changes":
        result = engine.request_modification(
            args.contract_id, args.requested_by, args.role, args.comments,
            expected_version=args.expected_version,
        )
    elif command == "submit-signature":
        result = engine.submit_for_signature(
            args.contract_id, args.signer, expected_version=args.expected_version
        )
    elif command == "sign":
        if args.signature_file:
            try:
                signature_image = Path(args.signature_file).read_text().strip()
            except OSError as e:
                logger.error(f"Cannot read signature file: {e}")
                result = WorkflowResult.fail(
                    ErrorKind.VALIDATION_ERROR,
                    f"Cannot read signature file: {args.signature_file}",
                )
                return _print_result(engine, result)
            result = engine.sign_contract(
                args.contract_id, args.signer, signature_image,
                expected_version=args.expected_version,
            )
        else:
            result = engine.mark_signed(
                args.contract_id, args.signer, expected_version=args.expected_version
            )
    elif command == "delete":
        result = engine.delete_contract(args.contract_id)
    elif command == "seed":
        _print_json({"seeded": seed_if_empty(engine.store)})
        return 0
    elif command == "stats":
        _print_json(engine.get_dashboard_stats(args.identity))
        return 0
    else:
        logger.error(f"Unknown command: {command}")
        return 1

    return _print_result(engine, result)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    # Load environment variables from .env file
    load_dotenv()

    args = parse_arguments(argv)
    setup_logging(log_dir=args.log_dir, level=args.log_level)

    try:
        store = create_contract_store(backend=args.backend, path=args.store_path, seed_demo=False)
        engine = create_workflow_engine(store=store)
        return run_command(args, engine)

    except ContractWorkflowError as e:
        logger.error(f"Workflow error: {e}")
        _print_json({"success": False, "message": str(e), "error": e.kind.value})
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
