"""
License Status Service - Expiry status and threshold resolution.

The calculator is a pure function shared by import, reporting and dashboard
callers. Threshold normalization and per-license override resolution live
here as well so every caller classifies a license identically.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_CRITICAL_DAYS = 30
DEFAULT_WARNING_DAYS = 90


class LicenseStatus(str, Enum):
    """Expiry status label stored on licenses."""
    UNKNOWN = 'Unknown'
    GOOD = 'Good'
    WARNING = 'Warning'
    CRITICAL = 'Critical'
    EXPIRED = 'Expired'


class Thresholds(NamedTuple):
    """Day-count boundaries; always warning_days > critical_days > 0 once normalized."""
    critical_days: int
    warning_days: int


def normalize_thresholds(critical_days: Optional[int], warning_days: Optional[int]) -> Thresholds:
    """
    Normalize a (critical, warning) pair.

    Non-positive or missing values fall back to the defaults. A warning
    threshold that does not exceed the critical one is raised to
    critical + 1.
    """
    critical = critical_days if critical_days and critical_days > 0 else DEFAULT_CRITICAL_DAYS
    warning = warning_days if warning_days and warning_days > 0 else DEFAULT_WARNING_DAYS

    if warning <= critical:
        logger.debug(f"Warning threshold {warning} <= critical {critical}; raising to {critical + 1}")
        warning = critical + 1

    return Thresholds(critical, warning)


def resolve_thresholds(
    use_custom: bool,
    critical_override: Optional[int],
    warning_override: Optional[int],
    system: Thresholds
) -> Thresholds:
    """
    Pick the thresholds that apply to one license.

    Without custom thresholds the system pair is used as-is. With custom
    thresholds each override independently falls back to the system value
    when null, and the result is normalized.
    """
    if not use_custom:
        return system

    return normalize_thresholds(
        critical_override if critical_override is not None else system.critical_days,
        warning_override if warning_override is not None else system.warning_days
    )


def resolve_license_thresholds(license, system: Thresholds) -> Thresholds:
    """Resolve thresholds from a License entity's override fields."""
    return resolve_thresholds(
        bool(license.use_custom_thresholds),
        license.critical_threshold_days,
        license.warning_threshold_days,
        system
    )


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def compute_status(
    expires_on: Optional[Union[date, datetime]],
    critical_days: int = DEFAULT_CRITICAL_DAYS,
    warning_days: int = DEFAULT_WARNING_DAYS,
    today: Optional[date] = None
) -> LicenseStatus:
    """
    Classify a license by days remaining until expiry.

    Args:
        expires_on: Expiry date (datetimes are reduced to their date)
        critical_days: Critical threshold in days
        warning_days: Warning threshold in days
        today: Reference UTC date (default: current UTC date)

    Returns:
        Unknown with no expiry; Expired when the date has passed; otherwise
        Critical, Warning or Good by threshold.
    """
    if expires_on is None:
        return LicenseStatus.UNKNOWN

    if isinstance(expires_on, datetime):
        expires_on = expires_on.date()

    today = today or utc_today()
    thresholds = normalize_thresholds(critical_days, warning_days)
    days = (expires_on - today).days

    if days < 0:
        return LicenseStatus.EXPIRED
    if days <= thresholds.critical_days:
        return LicenseStatus.CRITICAL
    if days <= thresholds.warning_days:
        return LicenseStatus.WARNING
    return LicenseStatus.GOOD


class ThresholdSettingsProvider:
    """
    Supplies the system-wide thresholds.

    Values come from configuration and are normalized on load, so callers
    never see a misconfigured pair.
    """

    def __init__(self, critical_days: int = DEFAULT_CRITICAL_DAYS,
                 warning_days: int = DEFAULT_WARNING_DAYS):
        self.critical_days = critical_days
        self.warning_days = warning_days

    def load(self) -> Thresholds:
        """Return the normalized system thresholds."""
        thresholds = normalize_thresholds(self.critical_days, self.warning_days)
        if thresholds != (self.critical_days, self.warning_days):
            logger.warning(
                f"Configured thresholds ({self.critical_days}/{self.warning_days}) normalized to "
                f"{thresholds.critical_days}/{thresholds.warning_days}"
            )
        return thresholds
