"""
Centralized configuration management for microservices

Usage:
    from core.config_manager import ConfigManager

    config_manager = ConfigManager("lead_billing_service")
    config = config_manager.get_service_config()
    print(config.service_port, config.payment.frontend_url)
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from .config import InfraConfig, LoggingConfig, PaymentConfig

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Environment":
        aliases = {"dev": cls.DEVELOPMENT, "test": cls.TESTING, "prod": cls.PRODUCTION}
        value = (value or "development").lower()
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            return cls.DEVELOPMENT


# Port registry
DEFAULT_PORTS = {
    "lead_billing_service": 8240,
}


def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class ServiceConfig:
    """Resolved configuration for one service"""
    service_name: str
    service_port: int
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False
    log_level: str = "INFO"
    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)


class ConfigManager:
    """Loads per-service configuration from the environment"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.environment = Environment.from_string(
            os.getenv("ENV") or os.getenv("ENVIRONMENT")
        )
        self._service_config: Optional[ServiceConfig] = None

    def get_service_config(self) -> ServiceConfig:
        if self._service_config is None:
            self._service_config = self._load()
        return self._service_config

    def _load(self) -> ServiceConfig:
        prefix = self.service_name.upper()
        logging_config = LoggingConfig.from_env()
        port = os.getenv(f"{prefix}_PORT") or os.getenv("SERVICE_PORT")
        return ServiceConfig(
            service_name=self.service_name,
            service_port=int(port) if port else DEFAULT_PORTS.get(self.service_name, 8000),
            environment=self.environment,
            debug=_bool(os.getenv("DEBUG", "false")),
            log_level=os.getenv(f"{prefix}_LOG_LEVEL", logging_config.log_level),
            infra=InfraConfig.from_env(),
            logging=logging_config,
            payment=PaymentConfig.from_env(),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return os.getenv(key, default)

    def discover_service(
        self,
        service_name: str,
        default_host: str = "localhost",
        default_port: int = 80,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve host and port of a dependency.

        Priority: environment variable, then default.
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port = os.getenv(env_port_key) if env_port_key else None
        resolved = (host or default_host, int(port) if port else default_port)
        logger.debug(f"Resolved {service_name} at {resolved[0]}:{resolved[1]}")
        return resolved

    def print_config_summary(self, show_secrets: bool = False):
        config = self.get_service_config()

        def secret(value: Optional[str]) -> str:
            if not value:
                return "<unset>"
            return value if show_secrets else value[:7] + "***"

        lines = [
            f"Service:      {config.service_name} ({config.environment.value})",
            f"Port:         {config.service_port}",
            f"Log level:    {config.log_level}",
            f"PostgreSQL:   {config.infra.postgres_host}:{config.infra.postgres_port}/{config.infra.postgres_db}",
            f"Stripe key:   {secret(config.payment.stripe_secret_key)}",
            f"Stripe mode:  {'test' if config.payment.is_test_mode else 'live'}",
            f"Webhook key:  {secret(config.payment.stripe_webhook_secret)}",
            f"Frontend URL: {config.payment.frontend_url}",
        ]
        for line in lines:
            logger.info(line)


def create_config(service_name: str) -> ServiceConfig:
    return ConfigManager(service_name).get_service_config()


__all__ = ["ConfigManager", "Environment", "ServiceConfig", "create_config"]
