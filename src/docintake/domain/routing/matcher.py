"""Routing rule matcher.

Chooses where an inbound document is stored. Exactly one rule is the
match for a given input: highest priority first, then earliest created,
then lowest id. When nothing matches, the org's default storage target is
used with a date-bucketed folder; that fallback is not an error.
"""

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...config import get_settings
from ...models.base import utcnow
from ...models.employee import Employee
from ...models.routing_rule import RoutingRule
from ...models.storage_target import StorageTarget
from .subject import normalize_subject
from .templates import DEFAULT_FOLDER_TEMPLATE, TemplateContext, resolve_folder_path

logger = logging.getLogger(__name__)


@dataclass
class RoutingDecision:
    """Storage decision for one inbound document.

    matched is False when the default target was used.
    """
    rule: Optional[RoutingRule]
    storage_target_id: Optional[UUID]
    provider: str
    folder_path: str
    matched: bool
    storage_config: dict[str, Any] = field(default_factory=dict)

    @property
    def rule_id(self) -> Optional[UUID]:
        return self.rule.id if self.rule else None


def sender_matches(pattern: Optional[str], sender: str) -> bool:
    """Match a sender address against a rule's sender pattern.

    Patterns wrapped in slashes are case-insensitive regexes searched in the
    address; anything else is a case-insensitive glob over the full address.
    """
    if not pattern:
        return True
    sender = (sender or "").strip().lower()
    if len(pattern) > 1 and pattern.startswith("/") and pattern.endswith("/"):
        return _regex_search(pattern[1:-1], sender)
    return fnmatch.fnmatchcase(sender, pattern.strip().lower())


def subject_matches(pattern: Optional[str], subject: str, normalized: str) -> bool:
    """Match a subject regex against the normalized and the raw subject."""
    if not pattern:
        return True
    return _regex_search(pattern, normalized) or _regex_search(pattern, subject or "")


def _regex_search(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value, re.IGNORECASE) is not None
    except re.error as e:
        logger.warning(f"Invalid routing pattern {pattern!r}: {e}")
        return False


def _rule_order(rule: RoutingRule):
    return (-(rule.priority or 0), rule.created_at or datetime.min, str(rule.id))


class RoutingMatcher:
    """Selects the routing rule and folder for an inbound document."""

    def __init__(self, db: Session):
        self.db = db

    def select_rule(self, rules: list[RoutingRule], sender: str, subject: str) -> Optional[RoutingRule]:
        normalized = normalize_subject(subject)
        candidates = [
            rule for rule in rules
            if rule.is_active
            and sender_matches(rule.sender_pattern, sender)
            and subject_matches(rule.subject_pattern, subject, normalized)
        ]
        if not candidates:
            return None
        return sorted(candidates, key=_rule_order)[0]

    def match(
        self,
        org_id: UUID,
        sender: str,
        subject: str,
        employee: Optional[Employee] = None,
        request_id: Optional[UUID] = None,
        received_at: Optional[datetime] = None,
        sender_name: Optional[str] = None,
    ) -> RoutingDecision:
        """Resolve the storage decision for a message.

        Args:
            org_id: Organization UUID
            sender: Sender email address
            subject: Raw message subject
            employee: Employee the document belongs to, if known
            request_id: Correlated DocumentRequest, if any
            received_at: Message timestamp used for date placeholders
            sender_name: Display name of the sender

        Returns:
            RoutingDecision with the chosen rule (or None) and resolved folder
        """
        rules = (
            self.db.query(RoutingRule)
            .filter(RoutingRule.org_id == org_id, RoutingRule.is_active.is_(True))
            .all()
        )
        context = TemplateContext(
            sender_email=(sender or "").strip().lower(),
            received_at=received_at or utcnow(),
            sender_name=sender_name,
            employee_email=employee.email if employee else None,
            employee_name=employee.full_name if employee else None,
            request_id=request_id,
        )

        rule = self.select_rule(rules, sender, subject)
        if rule is not None:
            target = self.db.get(StorageTarget, rule.storage_target_id)
            folder_path = resolve_folder_path(rule.folder_template, context)
            logger.info(
                f"Routing rule {rule.id} ({rule.name}) matched sender={context.sender_email} "
                f"priority={rule.priority} folder={folder_path}",
                extra={"org_id": org_id, "rule_id": rule.id},
            )
            return RoutingDecision(
                rule=rule,
                storage_target_id=rule.storage_target_id,
                provider=target.provider if target else get_settings().DEFAULT_STORAGE_PROVIDER,
                folder_path=folder_path,
                matched=True,
                storage_config=(target.config_json or {}) if target else {},
            )

        return self._fallback(org_id, context)

    def _fallback(self, org_id: UUID, context: TemplateContext) -> RoutingDecision:
        target = (
            self.db.query(StorageTarget)
            .filter(StorageTarget.org_id == org_id, StorageTarget.is_default.is_(True))
            .order_by(StorageTarget.created_at.asc())
            .first()
        )
        folder_path = resolve_folder_path(DEFAULT_FOLDER_TEMPLATE, context)
        logger.info(
            f"No routing rule matched sender={context.sender_email}, using default target "
            f"{target.id if target else 'none'} folder={folder_path}",
            extra={"org_id": org_id},
        )
        return RoutingDecision(
            rule=None,
            storage_target_id=target.id if target else None,
            provider=target.provider if target else get_settings().DEFAULT_STORAGE_PROVIDER,
            folder_path=folder_path,
            matched=False,
            storage_config=(target.config_json or {}) if target else {},
        )
