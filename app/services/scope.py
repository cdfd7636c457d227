import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from app.schemas.academics import ReportScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


def scope_key(scope: Optional[ReportScope]) -> str:
    if scope is None:
        return ""
    key = f"{scope.school_id}|{scope.year_id}|{scope.term_id}|{scope.class_id}"
    # Score sheets are additionally bound to one subject
    subject_id = getattr(scope, "subject_id", None)
    if subject_id is not None:
        key = f"{key}|{subject_id}"
    return key


class ScopeGuard:
    """
    Owner of the current scope token for a workspace.

    A scope change cancels the build that is still running for the old scope
    and bumps the token. Builders check ``is_current`` before committing each
    phase, so a result computed for an old scope is never applied even if it
    finished before the cancellation landed.
    """

    def __init__(self):
        self.current_key = ""
        self._task: Optional[asyncio.Task] = None
        self._on_change: List[Callable[[], None]] = []

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register a callback that clears scope-bound state."""
        self._on_change.append(callback)

    def change_scope(self, scope: Optional[ReportScope]) -> str:
        key = scope_key(scope)
        if self._task is not None and not self._task.done():
            logger.info(f"Cancelling build for stale scope {self.current_key}")
            self._task.cancel()
        self._task = None
        self.current_key = key
        for callback in self._on_change:
            callback()
        return key

    def is_current(self, key: str) -> bool:
        return bool(key) and key == self.current_key

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Run ``factory()`` as the tracked build for ``key``.

        Returns None when the scope has moved on, whether the build was
        cancelled or finished too late.
        """
        if not self.is_current(key):
            return None

        task = asyncio.ensure_future(factory())
        self._task = task
        try:
            await asyncio.wait({task})
        finally:
            # The caller itself was cancelled; do not leave the build running
            if not task.done():
                task.cancel()

        if self._task is task:
            self._task = None
        if task.cancelled():
            logger.debug(f"Build for scope {key} was cancelled")
            return None
        if not self.is_current(key):
            error = task.exception()
            logger.debug(f"Discarded build result for scope {key} (error: {error})")
            return None
        return task.result()
