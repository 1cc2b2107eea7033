from api.security import get_tls_config, sanitize_contract_data, validate_environment_security


def test_memory_backend_is_an_error_in_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("CONTRACT_STORE_BACKEND", "memory")

    result = validate_environment_security()

    assert not result["valid"]
    assert any("memory" in e for e in result["errors"])


def test_wildcard_cors_warns(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("CONTRACT_STORE_BACKEND", "sqlite")
    monkeypatch.setenv("CORS_ORIGINS", "*")

    result = validate_environment_security()

    assert result["valid"]
    assert any("wildcard" in w for w in result["warnings"])


def test_sanitize_redacts_documents_and_signature():
    data = {
        "id": "contract_1",
        "templateDocxBase64": "UEsDBBQ=",
        "xfdfString": "<xfdf/>",
        "signer": {"email": "erin@corp.com", "signatureImage": "data:image/png;base64,AAA"},
    }

    sanitized = sanitize_contract_data(data)

    assert sanitized["id"] == "contract_1"
    assert sanitized["templateDocxBase64"] == "[REDACTED: 8 characters]"
    assert sanitized["xfdfString"] == "[REDACTED: 7 characters]"
    assert sanitized["signer"]["signatureImage"] == "[REDACTED]"
    assert data["signer"]["signatureImage"].startswith("data:")


def test_tls_disabled_by_default(monkeypatch):
    monkeypatch.delenv("TLS_ENABLED", raising=False)

    assert get_tls_config() is None
