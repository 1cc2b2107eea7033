"""Security utilities for the contract API and data protection."""

import os
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from loguru import logger


def validate_environment_security() -> Dict[str, Any]:
    """Validate security configuration from environment variables.

    Returns:
        Dictionary with validation results and warnings
    """
    warnings = []
    errors = []
    is_production = os.getenv("ENVIRONMENT") == "production"

    backend = os.getenv("CONTRACT_STORE_BACKEND", "sqlite").lower()
    if backend == "memory":
        message = "CONTRACT_STORE_BACKEND is 'memory'. Contracts will be lost on restart."
        (errors if is_production else warnings).append(message)

    if os.getenv("SEED_DEMO_CONTRACTS", "false").lower() == "true" and is_production:
        warnings.append("SEED_DEMO_CONTRACTS is enabled in production.")

    # Check CORS configuration
    cors_origins = os.getenv("CORS_ORIGINS", "")
    if "*" in cors_origins:
        warnings.append(
            "CORS_ORIGINS includes wildcard (*). This is insecure for production."
        )
    elif not cors_origins:
        warnings.append("CORS_ORIGINS is not configured")

    # Check TLS configuration
    tls_enabled = os.getenv("TLS_ENABLED", "false").lower() == "true"
    if not tls_enabled:
        warnings.append(
            "TLS is not enabled. HTTPS should be used in production."
        )

    # Check log level
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if log_level == "DEBUG":
        warnings.append(
            "LOG_LEVEL is set to DEBUG. Consider using INFO or WARNING in production."
        )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings
    }


def sanitize_contract_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact signature images and document blobs from a serialized contract.

    Used before contract payloads are written to logs.

    Args:
        data: Contract dictionary in wire (camelCase) form

    Returns:
        Sanitized copy
    """
    sanitized = data.copy()

    for field in ("templateDocxBase64", "xfdfString"):
        value = sanitized.get(field)
        if value:
            sanitized[field] = f"[REDACTED: {len(value)} characters]"

    signer = sanitized.get("signer")
    if isinstance(signer, dict) and signer.get("signatureImage"):
        sanitized["signer"] = {**signer, "signatureImage": "[REDACTED]"}

    return sanitized


def get_security_headers() -> Dict[str, str]:
    """Get recommended security headers for API responses.

    Returns:
        Dictionary of security headers
    """
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Content-Security-Policy": "default-src 'self'",
        "Referrer-Policy": "strict-origin-when-cross-origin"
    }


def get_tls_config() -> Optional[Dict[str, str]]:
    """Get TLS/SSL configuration from environment.

    Returns:
        Dictionary with cert and key paths, or None if TLS is not enabled
    """
    tls_enabled = os.getenv("TLS_ENABLED", "false").lower() == "true"

    if not tls_enabled:
        return None

    cert_path = os.getenv("TLS_CERT_PATH")
    key_path = os.getenv("TLS_KEY_PATH")

    if not cert_path or not key_path:
        logger.warning("TLS_ENABLED is true but certificate paths are not configured")
        return None

    if not os.path.isfile(cert_path):
        logger.error(f"TLS certificate not found: {cert_path}")
        return None

    if not os.path.isfile(key_path):
        logger.error(f"TLS key not found: {key_path}")
        return None

    return {
        "certfile": cert_path,
        "keyfile": key_path
    }


def log_security_audit(event_type: str, contract_id: str, details: Optional[Dict[str, Any]] = None):
    """Log security-relevant contract events (deletion, signing) for audit trail.

    Args:
        event_type: Type of event (e.g., "contract_deleted", "contract_signed")
        contract_id: Contract identifier
        details: Optional additional details
    """
    audit_entry = {
        "event_type": event_type,
        "contract_id": contract_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details or {}
    }

    logger.info(f"SECURITY_AUDIT: {event_type}", **audit_entry)
