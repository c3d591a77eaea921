"""Store - one object bundling every repository over a shared Database."""

from .actions import DecisionRepository, PendingActionRepository
from .conversations import ConversationRepository
from .database import Database
from .events import EventLogRepository, EventRepository
from .learning import GenomeRepository, OutcomeRepository, RuleRepository, TrajectoryRepository
from .owners import SettingsRepository
from .portfolio import PortfolioRepository
from .workflows import WorkflowRepository


class Store:
    """
    Durable store facade.

    Services receive a Store and reach tables through its attributes, so
    tests can swap in an in-memory object with the same attribute names.
    """

    def __init__(self, db: Database):
        self.db = db
        self.events = EventRepository(db)
        self.event_log = EventLogRepository(db)
        self.pending_actions = PendingActionRepository(db)
        self.decisions = DecisionRepository(db)
        self.trajectories = TrajectoryRepository(db)
        self.workflows = WorkflowRepository(db)
        self.settings = SettingsRepository(db)
        self.genome = GenomeRepository(db)
        self.outcomes = OutcomeRepository(db)
        self.rules = RuleRepository(db)
        self.conversations = ConversationRepository(db)
        self.portfolio = PortfolioRepository(db)
