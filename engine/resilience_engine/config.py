"""
Configuration management for the resilience engine.

Uses pydantic-settings for type-safe environment variable handling.
Service URLs keep the bare names the deployment already exports
(GATEWAY_URL, USER_SERVICE_URL, ORDER_SERVICE_URL); everything else is
read with the RESILIENCE_ prefix.
"""

import shlex
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from resilience_engine.probes.models import TargetEndpoint


class RecordLookup(str, Enum):
    """How a marker record is read back from a service."""

    LIST = "list"  # GET /<resource> and find by id
    BY_ID = "by_id"  # GET /<resource>/<id>


class Settings(BaseSettings):
    """
    Orchestrator settings loaded from environment variables.

    Timing defaults mirror the deployment's observed recovery behaviour:
    a restarted service settles in ~10s, a full restart in ~60s.
    """

    model_config = SettingsConfigDict(
        env_prefix="RESILIENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Target services
    gateway_url: str = Field(
        default="http://localhost:3003",
        alias="GATEWAY_URL",
        description="API gateway base URL",
    )
    user_service_url: str = Field(
        default="http://localhost:3001",
        alias="USER_SERVICE_URL",
        description="User service base URL",
    )
    order_service_url: str = Field(
        default="http://localhost:3002",
        alias="ORDER_SERVICE_URL",
        description="Order service base URL",
    )
    health_path: str = Field(default="/health", description="Health probe path")
    record_lookup: RecordLookup = Field(
        default=RecordLookup.LIST,
        description="Read marker records by listing the collection or by id",
    )

    # Readiness polling
    probe_timeout_s: float = Field(
        default=5.0,
        description="Timeout for a single health probe",
        gt=0,
        le=60,
    )
    ready_max_attempts: int = Field(
        default=30,
        description="Probe attempts when waiting for a service to become ready",
        ge=1,
        le=1000,
    )
    ready_interval_s: float = Field(
        default=2.0,
        description="Interval between readiness probes",
        ge=0,
        le=60,
    )
    heal_max_attempts: int = Field(
        default=30,
        description="Probe attempts when waiting for recovery after a fault",
        ge=1,
        le=1000,
    )
    heal_interval_s: float = Field(
        default=3.0,
        description="Interval between recovery probes",
        ge=0,
        le=60,
    )
    outage_probe_timeout_s: float = Field(
        default=2.0,
        description="Probe timeout used when asserting a stopped service is unreachable",
        gt=0,
        le=60,
    )

    # Load generation
    load_concurrency: int = Field(
        default=50,
        alias="CONCURRENT_USERS",
        description="Virtual users per load profile",
        ge=1,
        le=10000,
    )
    load_requests_per_user: int = Field(
        default=20,
        alias="REQUESTS_PER_USER",
        description="Sequential requests issued by each virtual user",
        ge=1,
        le=100000,
    )
    load_request_timeout_s: float = Field(
        default=10.0,
        alias="TEST_TIMEOUT_S",
        description="Timeout for a single load request",
        gt=0,
        le=300,
    )
    load_ramp_up_s: float = Field(
        default=5.0,
        alias="RAMP_UP_TIME_S",
        description="Time over which virtual user start times are spread",
        ge=0,
        le=3600,
    )
    think_time_max_s: float = Field(
        default=0.1,
        description="Upper bound of the random pause between requests",
        ge=0,
        le=60,
    )
    mixed_think_time_max_s: float = Field(
        default=0.15,
        description="Upper bound of the random pause for the mixed workload",
        ge=0,
        le=60,
    )
    load_seed: int | None = Field(
        default=None,
        description="Seed for operation sampling and think time (None = random)",
    )
    single_service_threshold: float = Field(
        default=0.95,
        description="Minimum success rate for single-service load",
        ge=0,
        le=1,
    )
    mixed_threshold: float = Field(
        default=0.90,
        description="Minimum success rate for the mixed workload",
        ge=0,
        le=1,
    )

    # Performance monitoring during load
    monitor_concurrency: int = Field(
        default=20,
        description="Virtual users used while sampling gateway metrics",
        ge=1,
        le=10000,
    )
    monitor_duration_s: float = Field(
        default=30.0,
        description="How long gateway metrics are sampled",
        gt=0,
        le=3600,
    )
    monitor_interval_s: float = Field(
        default=2.0,
        description="Interval between gateway metrics samples",
        gt=0,
        le=600,
    )

    # Health automation
    continuous_health_duration_s: float = Field(
        default=20.0,
        description="Duration of continuous gateway health monitoring",
        gt=0,
        le=3600,
    )
    continuous_health_interval_s: float = Field(
        default=3.0,
        description="Interval of continuous gateway health monitoring",
        gt=0,
        le=600,
    )
    health_ratio_threshold: float = Field(
        default=0.8,
        description="Minimum healthy ratio during continuous monitoring",
        ge=0,
        le=1,
    )
    identity_polls: int = Field(
        default=5,
        description="Gateway health polls used to verify a stable identity",
        ge=1,
        le=1000,
    )

    # Infrastructure commands
    compose_command: str = Field(
        default="docker compose",
        description="Compose executable (e.g. 'docker compose' or 'docker-compose')",
    )
    compose_file: str = Field(
        default="docker-compose.distributed.yml",
        description="Compose file describing the deployment",
    )
    compose_project_dir: Path | None = Field(
        default=None,
        description="Working directory for compose commands",
    )
    infra_timeout_s: float = Field(
        default=60.0,
        description="Hard timeout for stop/start/restart commands",
        gt=0,
        le=3600,
    )
    deploy_timeout_s: float = Field(
        default=120.0,
        description="Hard timeout for down/up/scale commands",
        gt=0,
        le=3600,
    )
    gateway_component: str = Field(default="api_gateway")
    user_service_component: str = Field(default="user_service")
    order_service_component: str = Field(default="order_service")
    storage_fault_node: str = Field(
        default="cassandra2",
        description="Storage node stopped by the storage outage scenario",
    )

    # Scenario waits
    consistency_delay_s: float = Field(default=2.0, ge=0, le=600)
    restart_settle_s: float = Field(default=10.0, ge=0, le=3600)
    degraded_settle_s: float = Field(default=5.0, ge=0, le=3600)
    storage_rejoin_s: float = Field(default=30.0, ge=0, le=3600)
    system_restart_settle_s: float = Field(default=60.0, ge=0, le=3600)
    deploy_settle_s: float = Field(default=60.0, ge=0, le=3600)

    # Orchestrator
    startup_delay_s: float = Field(
        default=30.0,
        description="Delay before the first suite so freshly started services can settle",
        ge=0,
        le=3600,
    )
    report_dir: Path | None = Field(
        default=None,
        description="Directory for JSON run reports (disabled when unset)",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    log_file: Path | None = Field(default=None, description="Optional log file")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("gateway_url", "user_service_url", "order_service_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL without trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Service URL must start with http:// or https://: {v}")
        return v.rstrip("/")

    @field_validator("compose_command")
    @classmethod
    def validate_compose_command(cls, v: str) -> str:
        if not shlex.split(v):
            raise ValueError("compose_command must not be empty")
        return v

    @property
    def gateway(self) -> TargetEndpoint:
        return TargetEndpoint(name="api-gateway", base_url=self.gateway_url, health_path=self.health_path)

    @property
    def user_service(self) -> TargetEndpoint:
        return TargetEndpoint(
            name="user-service", base_url=self.user_service_url, health_path=self.health_path
        )

    @property
    def order_service(self) -> TargetEndpoint:
        return TargetEndpoint(
            name="order-service", base_url=self.order_service_url, health_path=self.health_path
        )

    @property
    def endpoints(self) -> list[TargetEndpoint]:
        """All service endpoints, in startup order."""
        return [self.user_service, self.order_service, self.gateway]

    @property
    def compose_argv(self) -> list[str]:
        """Compose command split into argv form."""
        return shlex.split(self.compose_command)

    def get_redacted_config(self) -> dict[str, str | int | float | bool | None]:
        """
        Get a flat configuration summary.
        Safe for logging and run reports.
        """
        return {
            "gateway_url": self.gateway_url,
            "user_service_url": self.user_service_url,
            "order_service_url": self.order_service_url,
            "load_concurrency": self.load_concurrency,
            "load_requests_per_user": self.load_requests_per_user,
            "compose_command": self.compose_command,
            "compose_file": self.compose_file,
            "log_level": self.log_level,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure single instance throughout a run.
    """
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
