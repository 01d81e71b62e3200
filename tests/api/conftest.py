"""
API Test Layer Configuration

Layer 1: API Contract Tests
- Requests go through the FastAPI app in-process (httpx ASGITransport)
- Service components are wired over in-memory mocks
- Validates status codes, error bodies and response contracts

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "unlock"        # Run unlock API tests
    pytest tests/api -v --tb=short         # Short traceback
"""

import os
import sys

import httpx
import pytest

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)


# =============================================================================
# Assertion Helpers
# =============================================================================


class APIAssertions:
    """API-specific assertion helpers"""

    @staticmethod
    def assert_success(response: httpx.Response, expected_status: int = 200):
        """Assert response is successful"""
        assert response.status_code == expected_status, (
            f"Expected {expected_status}, got {response.status_code}: {response.text}"
        )

    @staticmethod
    def assert_error(response: httpx.Response, expected_status: int, code: str = None):
        """Assert error status and, when given, the error code in the body"""
        assert response.status_code == expected_status, (
            f"Expected {expected_status}, got {response.status_code}: {response.text}"
        )
        if code:
            assert response.json().get("code") == code, response.text

    @staticmethod
    def assert_validation_error(response: httpx.Response):
        """Assert request validation error"""
        assert response.status_code == 422, f"Expected 422, got {response.status_code}"

    @staticmethod
    def assert_unauthorized(response: httpx.Response):
        """Assert unauthorized"""
        assert response.status_code == 401, f"Expected 401, got {response.status_code}"

    @staticmethod
    def assert_has_fields(data: dict, fields: list):
        """Assert response has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def api_assert() -> APIAssertions:
    """Provide API assertion helpers"""
    return APIAssertions()


def pytest_configure(config):
    config.addinivalue_line("markers", "api: marks tests as API contract tests")
