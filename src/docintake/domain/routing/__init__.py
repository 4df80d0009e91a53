"""Routing: subject normalization, rule matching and folder templates"""

from .subject import normalize_subject
from .templates import TemplateContext, resolve_folder_path
from .matcher import RoutingMatcher, RoutingDecision, sender_matches, subject_matches

__all__ = [
    "normalize_subject",
    "TemplateContext",
    "resolve_folder_path",
    "RoutingMatcher",
    "RoutingDecision",
    "sender_matches",
    "subject_matches",
]
