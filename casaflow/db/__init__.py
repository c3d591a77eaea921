"""casaflow durable store - asyncpg pool plus per-table repositories."""

from .actions import DecisionRepository, PendingActionRepository
from .conversations import ConversationRepository
from .database import Database
from .events import EventLogRepository, EventRepository
from .learning import GenomeRepository, OutcomeRepository, RuleRepository, TrajectoryRepository
from .owners import SettingsRepository
from .portfolio import PortfolioRepository
from .repository import Repository
from .store import Store
from .workflows import WorkflowRepository

__all__ = [
    "Database",
    "Repository",
    "Store",
    "EventRepository",
    "EventLogRepository",
    "PendingActionRepository",
    "DecisionRepository",
    "GenomeRepository",
    "OutcomeRepository",
    "RuleRepository",
    "TrajectoryRepository",
    "WorkflowRepository",
    "SettingsRepository",
    "ConversationRepository",
    "PortfolioRepository",
]
