"""
Component Test Layer Configuration (Layer 3)

Structure:
    tests/component/
    ├── lead_billing/   Service component tests
    └── mocks/          Mock implementations (in-memory repository, gateway)

Usage:
    pytest tests/component -v
    pytest tests/component/lead_billing -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

# Load test environment variables
from pathlib import Path
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent
test_env_file = project_root / "tests" / "config" / ".env.test"
if test_env_file.exists():
    load_dotenv(test_env_file, override=True)

from tests.component.mocks import InMemoryBillingRepository, MockPaymentGateway


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "component: marks tests as component tests")


# =============================================================================
# Shared Mock Fixtures
# =============================================================================


@pytest.fixture
def billing_repository() -> InMemoryBillingRepository:
    """Fresh in-memory billing repository"""
    return InMemoryBillingRepository()


@pytest.fixture
def payment_gateway() -> MockPaymentGateway:
    """Mock payment gateway"""
    return MockPaymentGateway()
