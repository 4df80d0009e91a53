"""Decision engine

Folds the stage outputs into a verdict.

    rejected      structural authenticity failure, a clear type mismatch,
                  an expired document the org does not accept, or a
                  duplicate under strict mode
    needs_review  any other critical issue, an ambiguous owner, or a score
                  below its auto-approval threshold
    verified      everything else

Critical issues and warnings are both kept for operator visibility.
"""

from dataclasses import dataclass, field

from ...models.validation_result import ExpiryStatus, Verdict
from ..org_settings import AutoApprovalConfig
from .authenticity import AuthenticityResult
from .classification import UNKNOWN_TYPE
from .compliance import ComplianceResult
from .expiry import ExpiryAnalysis
from .owner_match import OwnerMatch

# Critical issues that reject outright; the rest send the document to review
REJECTING_ISSUES = frozenset({
    "empty_file",
    "file_signature_mismatch",
    "authenticity_check_failed",
    "document_type_mismatch",
    "document_expired",
    "duplicate_document",
})


@dataclass
class DecisionInput:
    owner: OwnerMatch
    authenticity: AuthenticityResult
    compliance: ComplianceResult
    expiry: ExpiryAnalysis
    document_type: str
    strict_duplicates: bool = False
    extra_warnings: list[str] = field(default_factory=list)


@dataclass
class Decision:
    verdict: Verdict
    review_priority: str
    critical_issues: list[str]
    warnings: list[str]
    can_auto_approve: bool

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "review_priority": self.review_priority,
            "critical_issues": list(self.critical_issues),
            "warnings": list(self.warnings),
            "can_auto_approve": self.can_auto_approve,
        }


class DecisionEngine:
    """Applies organization thresholds to validation signals."""

    def __init__(self, config: AutoApprovalConfig):
        self.config = config

    def decide(self, data: DecisionInput) -> Decision:
        cfg = self.config
        critical: list[str] = []
        warnings: list[str] = []

        # Owner
        owner_conf = data.owner.confidence
        if owner_conf < cfg.reject_owner_confidence:
            critical.append("name_match_low_confidence")
        elif owner_conf < cfg.min_owner_confidence:
            warnings.append("name_match_moderate_confidence")
        if data.owner.ambiguous:
            warnings.append("owner_match_ambiguous")

        # Expiry
        if data.expiry.status == ExpiryStatus.EXPIRED and not cfg.allow_expired:
            critical.append("document_expired")
        elif data.expiry.status == ExpiryStatus.EXPIRED:
            warnings.append("document_expired_allowed")
        elif data.expiry.status == ExpiryStatus.EXPIRING_SOON:
            warnings.append(f"expiring_in_{data.expiry.days_until_expiry}_days")

        # Authenticity
        auth = data.authenticity
        if auth.empty:
            critical.append("empty_file")
        elif auth.signature_valid is False:
            critical.append("file_signature_mismatch")
        elif auth.score < cfg.reject_authenticity_score:
            critical.append("authenticity_check_failed")
        elif auth.score < cfg.min_authenticity_score:
            warnings.append("authenticity_score_low")

        if auth.is_duplicate:
            if data.strict_duplicates:
                critical.append("duplicate_document")
            else:
                warnings.append("duplicate_document")

        # Compliance
        if not data.compliance.matches:
            if data.document_type == UNKNOWN_TYPE:
                critical.append("document_type_unrecognized")
            else:
                critical.append("document_type_mismatch")
        elif data.compliance.score < cfg.min_compliance_score:
            warnings.append("document_type_partial_match")

        for warning in data.extra_warnings:
            if warning not in warnings:
                warnings.append(warning)

        can_auto_approve = (
            not critical
            and not data.owner.ambiguous
            and owner_conf >= cfg.min_owner_confidence
            and auth.score >= cfg.min_authenticity_score
            and data.compliance.score >= cfg.min_compliance_score
        )

        if any(issue in REJECTING_ISSUES for issue in critical):
            verdict = Verdict.REJECTED
        elif can_auto_approve:
            verdict = Verdict.VERIFIED
        else:
            verdict = Verdict.NEEDS_REVIEW

        return Decision(
            verdict=verdict,
            review_priority=self.review_priority(verdict, critical, warnings, owner_conf),
            critical_issues=critical,
            warnings=warnings,
            can_auto_approve=can_auto_approve,
        )

    @staticmethod
    def review_priority(verdict: Verdict, critical: list[str], warnings: list[str], owner_conf: float) -> str:
        if verdict == Verdict.REJECTED or len(critical) >= 2:
            return "critical"
        if critical or len(warnings) > 2 or owner_conf < 0.85:
            return "high"
        if warnings:
            return "medium"
        return "low"

