"""Structured ownership of asyncio tasks.

A scope owns the tasks launched into it and its child scopes. Cancelling a
scope cancels everything below it.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TaskScope:
    """Owner of a group of tasks.

    Examples:
        >>> root = TaskScope()
        >>> session_scope = root.child()
        >>> task = session_scope.launch(run_turn())
        >>> session_scope.cancel()  # cancels task
    """

    def __init__(self, name: str = "root", parent: "TaskScope | None" = None):
        self.name = name
        self._parent = parent
        self._tasks: set[asyncio.Task] = set()
        self._children: list[TaskScope] = []
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def active_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def launch(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Run a coroutine as a task owned by this scope.

        Raises:
            RuntimeError: If the scope was cancelled
        """
        if self._cancelled:
            coro.close()
            raise RuntimeError(f"Scope '{self.name}' is cancelled")

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def child(self, name: str | None = None) -> "TaskScope":
        """Create a scope cancelled together with this one."""
        if self._cancelled:
            raise RuntimeError(f"Scope '{self.name}' is cancelled")
        scope = TaskScope(name or f"{self.name}.{len(self._children)}", parent=self)
        self._children.append(scope)
        return scope

    def cancel(self) -> None:
        """Cancel every task and child scope. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True

        for scope in list(self._children):
            scope.cancel()
        for task in list(self._tasks):
            task.cancel()

        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)
        logger.debug("Scope %s cancelled", self.name)

    def _pending(self) -> list[asyncio.Task]:
        pending = [task for task in self._tasks if not task.done()]
        for scope in self._children:
            pending.extend(scope._pending())
        return pending

    async def wait(self) -> None:
        """Wait until every task in this scope and its children finished."""
        pending = self._pending()
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = self._pending()
