"""
Configuration management for esmodeller.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep environment variable names stable
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Supported document store backends."""

    ELASTICSEARCH = "elasticsearch"
    MEMORY = "memory"


@dataclass(frozen=True)
class ElasticsearchConfig:
    """Elasticsearch connection configuration.

    Attributes:
        hosts: Cluster node URLs
        api_key: API key (takes precedence over basic auth)
        username: Basic auth username
        password: Basic auth password
        verify_certs: Verify TLS certificates
        ca_certs: Path to CA bundle
        request_timeout: Default per-request timeout in seconds
    """

    hosts: tuple[str, ...] = ("http://localhost:9200",)
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    verify_certs: bool = True
    ca_certs: str | None = None
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> ElasticsearchConfig:
        """Load configuration from environment variables."""
        hosts = os.getenv("ES_HOSTS", "http://localhost:9200")
        return cls(
            hosts=tuple(h.strip() for h in hosts.split(",") if h.strip()),
            api_key=os.getenv("ES_API_KEY"),
            username=os.getenv("ES_USERNAME"),
            password=os.getenv("ES_PASSWORD"),
            verify_certs=os.getenv("ES_VERIFY_CERTS", "true").lower() == "true",
            ca_certs=os.getenv("ES_CA_CERTS"),
            request_timeout=float(os.getenv("ES_REQUEST_TIMEOUT", "10")),
        )


@dataclass(frozen=True)
class ScrollConfig:
    """Scroll (cursor) configuration.

    Attributes:
        keep_alive: How long the store keeps a scroll context between pages
        page_size: Hits per page
    """

    keep_alive: str = "30s"
    page_size: int = 10

    @classmethod
    def from_env(cls) -> ScrollConfig:
        """Load configuration from environment variables."""
        return cls(
            keep_alive=os.getenv("SCROLL_KEEP_ALIVE", "30s"),
            page_size=int(os.getenv("SCROLL_PAGE_SIZE", "10")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ModellerConfig:
    """Complete modeller configuration.

    Attributes:
        backend: Which document store to use
        elasticsearch: Elasticsearch configuration
        scroll: Scroll configuration
        observability: Logging configuration
    """

    backend: StoreBackend = StoreBackend.ELASTICSEARCH
    elasticsearch: ElasticsearchConfig = field(default_factory=ElasticsearchConfig)
    scroll: ScrollConfig = field(default_factory=ScrollConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ModellerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ModellerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        backend_str = os.getenv("STORE_BACKEND", "elasticsearch").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: elasticsearch, memory"
            )

        config = cls(
            backend=backend,
            elasticsearch=ElasticsearchConfig.from_env(),
            scroll=ScrollConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backend == StoreBackend.ELASTICSEARCH and not self.elasticsearch.hosts:
            raise ValueError("ES_HOSTS is required when STORE_BACKEND=elasticsearch")

        if bool(self.elasticsearch.username) != bool(self.elasticsearch.password):
            raise ValueError("ES_USERNAME and ES_PASSWORD must be set together")

        if self.elasticsearch.request_timeout <= 0:
            raise ValueError("ES_REQUEST_TIMEOUT must be positive")

        if self.scroll.page_size <= 0:
            raise ValueError("SCROLL_PAGE_SIZE must be positive")

        if not self.scroll.keep_alive:
            raise ValueError("SCROLL_KEEP_ALIVE cannot be empty")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Modeller configuration loaded",
            extra={
                "backend": self.backend.value,
                "es_hosts": list(self.elasticsearch.hosts)
                if self.backend == StoreBackend.ELASTICSEARCH
                else None,
                "es_auth": "api_key"
                if self.elasticsearch.api_key
                else ("basic" if self.elasticsearch.username else None),
                "scroll_keep_alive": self.scroll.keep_alive,
                "scroll_page_size": self.scroll.page_size,
                "log_level": self.observability.log_level,
            },
        )
