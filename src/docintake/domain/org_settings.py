"""Per-organization settings resolution.

Org.settings_json overrides the environment defaults from config.Settings.
Unknown or malformed override values fall back to the default.
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..config import get_settings
from ..models.org import Org


@dataclass
class AutoApprovalConfig:
    """Thresholds used by the decision engine."""
    min_owner_confidence: float
    min_authenticity_score: float
    min_compliance_score: float
    reject_owner_confidence: float
    reject_authenticity_score: float
    allow_expired: bool


@dataclass
class RateLimitConfig:
    max_requests: int
    window_seconds: int


@dataclass
class ValidationConfig:
    auto_approval: AutoApprovalConfig
    rate_limit: RateLimitConfig
    expiry_horizon_days: int
    strict_duplicates: bool


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _section(settings_json: Optional[dict], key: str) -> dict:
    section = (settings_json or {}).get(key)
    return section if isinstance(section, dict) else {}


def resolve_validation_config(org: Optional[Org]) -> ValidationConfig:
    """Merge an org's settings_json over the configured defaults.

    Recognized keys:
        auto_approval.{min_owner_confidence, min_authenticity_score,
                       min_compliance_score, allow_expired}
        validation.rate_limit.{max_requests, window_seconds}
        validation.{expiry_horizon_days, strict_duplicates}
    """
    defaults = get_settings()
    settings_json = org.settings_json if org is not None else None

    approval = _section(settings_json, "auto_approval")
    validation = _section(settings_json, "validation")
    rate_limit = validation.get("rate_limit") if isinstance(validation.get("rate_limit"), dict) else {}

    allow_expired = approval.get("allow_expired", defaults.ALLOW_EXPIRED)
    strict_duplicates = validation.get("strict_duplicates", defaults.STRICT_DUPLICATES)

    return ValidationConfig(
        auto_approval=AutoApprovalConfig(
            min_owner_confidence=_number(approval.get("min_owner_confidence"), defaults.MIN_OWNER_CONFIDENCE),
            min_authenticity_score=_number(approval.get("min_authenticity_score"), defaults.MIN_AUTHENTICITY_SCORE),
            min_compliance_score=_number(approval.get("min_compliance_score"), defaults.MIN_COMPLIANCE_SCORE),
            reject_owner_confidence=defaults.REJECT_OWNER_CONFIDENCE,
            reject_authenticity_score=defaults.REJECT_AUTHENTICITY_SCORE,
            allow_expired=allow_expired if isinstance(allow_expired, bool) else defaults.ALLOW_EXPIRED,
        ),
        rate_limit=RateLimitConfig(
            max_requests=int(_number(rate_limit.get("max_requests"), defaults.MANUAL_VALIDATION_RATE_LIMIT)),
            window_seconds=int(_number(rate_limit.get("window_seconds"), defaults.MANUAL_VALIDATION_WINDOW_SECONDS)),
        ),
        expiry_horizon_days=int(_number(validation.get("expiry_horizon_days"), defaults.EXPIRY_HORIZON_DAYS)),
        strict_duplicates=strict_duplicates if isinstance(strict_duplicates, bool) else defaults.STRICT_DUPLICATES,
    )
