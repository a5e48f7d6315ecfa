"""
Unit tests for the shared package: errors, logging helpers and import boundaries.
"""

import ast
import pytest
from pathlib import Path

import shared
from shared.errors import (
    AccessLayerException,
    CacheCorruptedError,
    CacheUnavailableError,
    ConfigurationError,
    InvalidKeyError,
    LedgerQueryError,
    MissingIdentityError,
)
from shared.logging import (
    add_correlation_context,
    clear_context,
    mask_identity,
    set_identity_context,
    set_request_id,
)


class TestErrors:
    """Test cases for access layer errors."""

    @pytest.mark.parametrize("error,code", [
        (MissingIdentityError(), "MISSING_IDENTITY"),
        (InvalidKeyError(), "INVALID_KEY"),
        (LedgerQueryError(), "LEDGER_QUERY_FAILED"),
        (CacheCorruptedError(), "CACHE_CORRUPTED"),
        (CacheUnavailableError(), "CACHE_UNAVAILABLE"),
        (ConfigurationError(), "CONFIGURATION_ERROR"),
    ])
    def test_codes(self, error, code):
        assert isinstance(error, AccessLayerException)
        assert error.code == code

    def test_to_response(self):
        error = LedgerQueryError(details={"error": "timeout"})

        response = error.to_response()

        assert response.code == "LEDGER_QUERY_FAILED"
        assert response.message == "Ledger query failed"
        assert response.details == {"error": "timeout"}
        assert response.trace_id is None


class TestLogging:
    """Test cases for logging helpers."""

    def test_mask_identity(self):
        key = "0123456789abcdef" * 4

        assert mask_identity(key) == "01234567...89abcdef"
        assert mask_identity("short") == "short"
        assert mask_identity(None) is None

    def test_correlation_context(self):
        set_request_id("req-1")
        set_identity_context("ab" * 57)

        event = add_correlation_context(None, "info", {"event": "Access decision"})

        assert event["request_id"] == "req-1"
        assert event["identity"] == mask_identity("ab" * 57)

        clear_context()
        assert add_correlation_context(None, "info", {}) == {}


class TestPackageBoundaries:
    """Test cases for dependencies of the shared package."""

    @pytest.mark.parametrize("module", sorted(Path(shared.__file__).parent.glob("*.py")), ids=lambda path: path.name)
    def test_shared_never_imports_services(self, module):
        tree = ast.parse(module.read_text(encoding="utf-8"))

        imported = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                imported.update(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.module:
                imported.add(node.module)

        assert not [name for name in imported if name.startswith("service_")]
