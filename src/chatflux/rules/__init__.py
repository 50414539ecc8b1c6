"""Rule tree routing."""

from .base import MatchedAction, Rule, flatten_rules
from .builder import RuleBuilder
from .matchers import Always, Command, From, InRoom, Mention, Pattern, Predicate

__all__ = [
    "Always",
    "Command",
    "From",
    "InRoom",
    "MatchedAction",
    "Mention",
    "Pattern",
    "Predicate",
    "Rule",
    "RuleBuilder",
    "flatten_rules",
]
