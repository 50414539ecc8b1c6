"""chatflux - rule-tree chat bots with serialized state transitions."""

from .bot import Bot, BotContext
from .rules import Rule, RuleBuilder
from .store import Store
from .types import Action, Message, Mutation

__version__ = "0.1.0"

__all__ = ["Action", "Bot", "BotContext", "Message", "Mutation", "Rule", "RuleBuilder", "Store"]
