import logging
import time
from typing import Dict, Optional, Tuple

from app.config import settings
from app.schemas.users import CurrentUser
from app.services.grading import GradingScaleService
from app.services.lookups import LookupService
from app.services.ords import OrdsClient
from app.services.report_cards import ReportCardService
from app.services.reviews import ReviewReconciler
from app.services.scope import ScopeGuard
from app.services.scores import ScoreSheetService
from app.services.stores import Stores

logger = logging.getLogger(__name__)


class Workspace:
    """Editing session of one user: the active report and score sheet."""

    def __init__(self, user: CurrentUser, client: OrdsClient):
        self.user = user
        self.client = client
        self.last_used = time.monotonic()
        self.stores = Stores(client)
        self.guard = ScopeGuard()
        self.reports = ReviewReconciler(self.stores, self.guard)
        self.report_cards = ReportCardService(self.stores)
        self.scores = ScoreSheetService(self.stores)
        self.lookups = LookupService(self.stores.lookups)
        self.scales = GradingScaleService(self.stores.scales)


class WorkspaceRegistry:
    """In-process registry of workspaces keyed by (school, user)."""

    def __init__(self, client_factory=OrdsClient, idle_minutes: Optional[int] = None, clock=time.monotonic):
        self.client_factory = client_factory
        self.idle_seconds = 60 * (idle_minutes if idle_minutes is not None else settings.WORKSPACE_IDLE_MINUTES)
        self.clock = clock
        self._workspaces: Dict[Tuple[int, int], Workspace] = {}

    def get(self, user: CurrentUser, token: Optional[str] = None) -> Workspace:
        now = self.clock()
        self.evict_idle(now)

        key = (user.school_id, user.user_id)
        workspace = self._workspaces.get(key)
        if workspace is None:
            logger.info(f"Opening workspace for user {user.user_id} of school {user.school_id}")
            workspace = Workspace(user, self.client_factory())
            self._workspaces[key] = workspace
        # Role and token may change between logins; the rows survive
        workspace.user = user
        workspace.client.token = token
        workspace.last_used = now
        return workspace

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Drop every workspace unused for longer than the idle timeout."""
        if self.idle_seconds <= 0:
            return 0
        now = self.clock() if now is None else now
        idle = [w.user for w in self._workspaces.values() if now - w.last_used > self.idle_seconds]
        for user in idle:
            self.discard(user)
        return len(idle)

    def discard(self, user: CurrentUser) -> None:
        workspace = self._workspaces.pop((user.school_id, user.user_id), None)
        if workspace is not None:
            logger.info(f"Closing idle workspace of user {user.user_id} of school {user.school_id}")
            workspace.guard.change_scope(None)
            workspace.scores.guard.change_scope(None)

    def __len__(self) -> int:
        return len(self._workspaces)

    def clear(self) -> None:
        self._workspaces.clear()


registry = WorkspaceRegistry()
