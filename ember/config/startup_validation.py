"""
Startup Validation Module for Ember.

Checks the members config, the snapshot directory and the refresh secret
before the API or the generator starts. Problems with optional pieces
degrade features instead of stopping the process.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .members import MembersConfigError, load_members
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 16


class ServiceStatus(Enum):
    """Status of a validated component."""
    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class ValidationResult:
    """Result of a single validation check."""
    service: str
    status: ServiceStatus
    message: str
    required: bool = True
    details: Optional[Dict[str, Any]] = None


@dataclass
class StartupValidation:
    """Complete startup validation results."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    services: Dict[str, ValidationResult] = field(default_factory=dict)

    def add_result(self, result: ValidationResult):
        """Add a validation result."""
        self.services[result.service] = result

        if result.status == ServiceStatus.UNAVAILABLE:
            if result.required:
                self.is_valid = False
                self.errors.append(f"[{result.service}] {result.message}")
            else:
                self.warnings.append(f"[{result.service}] {result.message}")
        elif result.status == ServiceStatus.DEGRADED:
            self.warnings.append(f"[{result.service}] {result.message}")

    def log_summary(self):
        """Log validation summary."""
        for service, result in self.services.items():
            if result.status == ServiceStatus.AVAILABLE:
                logger.info(f"{service}: {result.status.value}")
            else:
                logger.warning(f"{service}: {result.status.value} - {result.message}")

        for error in self.errors:
            logger.error(f"Startup error: {error}")

        if self.is_valid:
            logger.info("Startup validation passed")
        else:
            logger.error("Startup validation failed")


def validate_members_config(settings: Settings) -> ValidationResult:
    """Validate that config.yaml exists and parses."""
    try:
        members = load_members(settings.config_path)
    except MembersConfigError as e:
        return ValidationResult(
            service="Members Config",
            status=ServiceStatus.UNAVAILABLE,
            message=str(e),
            required=True
        )

    source_count = sum(len(user.sources) for user in members.users)
    return ValidationResult(
        service="Members Config",
        status=ServiceStatus.AVAILABLE,
        message=f"{len(members.users)} users, {source_count} feed sources",
        details={"users": len(members.users), "sources": source_count}
    )


def validate_data_dir(settings: Settings) -> ValidationResult:
    """Check that the snapshot directory is usable and whether snapshots exist."""
    data_dir = Path(settings.data_dir)

    if data_dir.exists() and not data_dir.is_dir():
        return ValidationResult(
            service="Snapshot Directory",
            status=ServiceStatus.DEGRADED,
            message=f"{data_dir} exists but is not a directory. Snapshots cannot be written.",
            required=False
        )

    missing = [
        path.name
        for path in (settings.feed_snapshot_path, settings.users_snapshot_path)
        if not path.exists()
    ]
    if missing:
        return ValidationResult(
            service="Snapshot Directory",
            status=ServiceStatus.DEGRADED,
            message=f"Missing snapshots: {', '.join(missing)}. "
                    "Run ember-generate; the API will fetch feeds live until then.",
            required=False,
            details={"missing": missing}
        )

    if not os.access(data_dir, os.W_OK):
        return ValidationResult(
            service="Snapshot Directory",
            status=ServiceStatus.DEGRADED,
            message=f"{data_dir} is not writable. Refreshed snapshots will not be persisted.",
            required=False
        )

    return ValidationResult(
        service="Snapshot Directory",
        status=ServiceStatus.AVAILABLE,
        message="Snapshots present"
    )


def validate_refresh_secret(settings: Settings) -> ValidationResult:
    """Validate the shared secret for the manual refresh endpoint."""
    secret = settings.refresh_api_key

    if not secret:
        return ValidationResult(
            service="Refresh Endpoint",
            status=ServiceStatus.DEGRADED,
            message="REFRESH_API_KEY not set. Manual feed refresh is disabled.",
            required=False
        )

    if len(secret) < MIN_SECRET_LENGTH:
        return ValidationResult(
            service="Refresh Endpoint",
            status=ServiceStatus.DEGRADED,
            message=f"REFRESH_API_KEY is too short. Use at least {MIN_SECRET_LENGTH} characters.",
            required=False
        )

    return ValidationResult(
        service="Refresh Endpoint",
        status=ServiceStatus.AVAILABLE,
        message="Refresh secret configured"
    )


def run_startup_validation(
    settings: Optional[Settings] = None,
    require_members: bool = True,
    exit_on_failure: bool = False,
    log_summary: bool = True
) -> StartupValidation:
    """
    Run complete startup validation.

    Args:
        settings: Settings to validate (defaults to environment settings)
        require_members: Whether a valid config.yaml is required
        exit_on_failure: Exit process if validation fails
        log_summary: Log validation summary

    Returns:
        StartupValidation with all results
    """
    settings = settings or get_settings()
    validation = StartupValidation()

    members_result = validate_members_config(settings)
    members_result.required = require_members
    validation.add_result(members_result)

    validation.add_result(validate_data_dir(settings))
    validation.add_result(validate_refresh_secret(settings))

    if log_summary:
        validation.log_summary()

    if exit_on_failure and not validation.is_valid:
        logger.error("Startup validation failed. Exiting.")
        sys.exit(1)

    return validation
