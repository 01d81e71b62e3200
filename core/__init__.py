#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure for the lead billing microservices.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - config_manager.py: Per-service configuration
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg connection pool wrapper
    - auth_dependencies.py: FastAPI header identity dependencies

USAGE:
    from core.config_manager import ConfigManager

    config = ConfigManager("lead_billing_service")
"""

from .config_manager import ConfigManager, Environment, ServiceConfig, create_config

__all__ = [
    "ConfigManager",
    "Environment",
    "ServiceConfig",
    "create_config",
]

__version__ = "1.0.0"
