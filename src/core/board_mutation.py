"""
Taskflow — Board Mutation Engine.

Pure transitions over the Board → Column → Task tree (move, completion
toggle, remove, append) plus BoardCoordinator, which applies them
optimistically and reconciles with the backend.

Invariant: after any transition, every touched column's task orders are
exactly 1..N in positional order.

Reconciliation is all-or-nothing: when a persistence call fails, the
optimistic board is discarded and the authoritative board is fetched again.
There is no field-level rollback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from src.config import settings
from src.ports.persistence_port import PersistenceError

if TYPE_CHECKING:
    from src.data.models import Board, Column, Task
    from src.ports.persistence_port import PersistencePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveInstruction:
    """Move a task to `to_index` (0-based) of `to_column_id`."""

    task_id: int
    from_column_id: int
    to_column_id: int
    to_index: int


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def find_column(board: Board, column_id: int) -> Column | None:
    for col in board.columns:
        if col.id == column_id:
            return col
    return None


def find_task(board: Board, task_id: int) -> tuple[Column, int] | None:
    """Return (column, index) holding the task, or None."""
    for col in board.columns:
        for idx, task in enumerate(col.tasks):
            if task.id == task_id:
                return col, idx
    return None


def is_done_column(column: Column) -> bool:
    return column.title.strip().lower() == settings.DONE_COLUMN_TITLE.lower()


def find_done_column(board: Board) -> Column | None:
    for col in board.columns:
        if is_done_column(col):
            return col
    return None


def ordered_columns(board: Board) -> list[Column]:
    """Columns sorted by their order, with the Done column always last."""
    return sorted(board.columns, key=lambda c: (is_done_column(c), c.order))


# ---------------------------------------------------------------------------
# Pure transitions
# ---------------------------------------------------------------------------


def _renumber(tasks: list[Task], column_id: int) -> list[Task]:
    """Rewrite order to 1..N (and column_id), copying only tasks that change."""
    result = []
    for position, task in enumerate(tasks, start=1):
        if task.order != position or task.column_id != column_id:
            task = replace(task, order=position, column_id=column_id)
        result.append(task)
    return result


def _with_columns(board: Board, changed: dict[int, Column]) -> Board:
    return replace(board, columns=[changed.get(c.id, c) for c in board.columns])


def apply_move(board: Board, instruction: MoveInstruction) -> Board:
    """Return a new board with the task moved, orders renumbered.

    The input board is never mutated. The very same board object comes back
    when the instruction is a no-op: the task is dropped where it already
    is, or the instruction refers to a column or task that no longer
    exists (stale UI state).
    """
    source = find_column(board, instruction.from_column_id)
    dest = find_column(board, instruction.to_column_id)
    if source is None or dest is None:
        logger.warning("Ignoring move with unknown column: %s", instruction)
        return board

    source_index = next(
        (i for i, t in enumerate(source.tasks) if t.id == instruction.task_id), None,
    )
    if source_index is None:
        logger.warning("Ignoring move of task not in source column: %s", instruction)
        return board

    if source.id == dest.id and instruction.to_index == source_index:
        return board

    task = source.tasks[source_index]
    source_tasks = source.tasks[:source_index] + source.tasks[source_index + 1:]

    if source.id == dest.id:
        dest_tasks = source_tasks
    else:
        dest_tasks = list(dest.tasks)
    index = max(0, min(instruction.to_index, len(dest_tasks)))
    dest_tasks.insert(index, task)

    changed = {dest.id: replace(dest, tasks=_renumber(dest_tasks, dest.id))}
    if source.id != dest.id:
        changed[source.id] = replace(source, tasks=_renumber(source_tasks, source.id))
    return _with_columns(board, changed)


def apply_completion_toggle(
    board: Board, task_id: int, is_completed: bool
) -> tuple[Board, MoveInstruction | None]:
    """Set a task's completed flag; completed tasks move to the end of Done.

    Un-completing a task never moves it out of Done.
    """
    found = find_task(board, task_id)
    if found is None:
        logger.warning("Ignoring completion toggle for unknown task %d", task_id)
        return board, None

    column, idx = found
    tasks = list(column.tasks)
    tasks[idx] = replace(tasks[idx], is_completed=is_completed)
    board = _with_columns(board, {column.id: replace(column, tasks=tasks)})

    if not is_completed:
        return board, None

    done = find_done_column(board)
    if done is None or done.id == column.id:
        return board, None

    instruction = MoveInstruction(
        task_id=task_id,
        from_column_id=column.id,
        to_column_id=done.id,
        to_index=len(done.tasks),
    )
    return apply_move(board, instruction), instruction


def remove_task(board: Board, task_id: int) -> Board:
    """Drop a task from its column and close the order gap."""
    found = find_task(board, task_id)
    if found is None:
        return board
    column, idx = found
    tasks = column.tasks[:idx] + column.tasks[idx + 1:]
    return _with_columns(board, {column.id: replace(column, tasks=_renumber(tasks, column.id))})


def append_task(board: Board, task: Task) -> Board:
    """Add a task at the end of its column."""
    column = find_column(board, task.column_id)
    if column is None:
        logger.warning("Ignoring new task %d for unknown column %d", task.id, task.column_id)
        return board
    tasks = _renumber([*column.tasks, task], column.id)
    return _with_columns(board, {column.id: replace(column, tasks=tasks)})


# ---------------------------------------------------------------------------
# Side-effect coordinator
# ---------------------------------------------------------------------------


class BoardCoordinator:
    """Owns the in-memory board of one screen and keeps it in sync.

    Every intent updates `self.board` immediately, then persists. A failed
    persistence call triggers refresh(), whose result supersedes all
    optimistic state. Intents are serialized with a lock, so at most one is
    in flight at a time.
    """

    def __init__(self, backend: PersistencePort, board_id: int | None = None) -> None:
        self.backend = backend
        self.board_id = board_id or settings.DEFAULT_BOARD_ID
        self.board: Board | None = None
        self._lock = asyncio.Lock()

    async def refresh(self) -> Board:
        """Replace the local board with the backend's authoritative copy."""
        self.board = await self.backend.get_board_with_columns(self.board_id)
        logger.info("Board %d loaded (%d columns)", self.board_id, len(self.board.columns))
        return self.board

    async def _reconcile(self, what: str, exc: Exception) -> None:
        logger.warning("%s failed (%s); refetching board %d", what, exc, self.board_id)
        await self.refresh()

    async def submit_move(self, instruction: MoveInstruction) -> Board:
        """Apply a drag-and-drop move, then persist it (1-based order)."""
        async with self._lock:
            if self.board is None:
                await self.refresh()
            before = self.board
            after = apply_move(before, instruction)
            if after is before:
                return before
            self.board = after
            try:
                await self._persist_move(after, instruction)
            except PersistenceError as exc:
                await self._reconcile(f"Move of task {instruction.task_id}", exc)
            return self.board

    async def submit_completion_toggle(self, task_id: int, is_completed: bool) -> Board:
        """Flip a task's completed flag; completing it cascades into Done."""
        async with self._lock:
            if self.board is None:
                await self.refresh()
            after, instruction = apply_completion_toggle(self.board, task_id, is_completed)
            if after is self.board:
                return self.board
            self.board = after
            try:
                await self.backend.update_task(task_id, {"is_completed": is_completed})
                if instruction is not None:
                    await self._persist_move(after, instruction)
            except PersistenceError as exc:
                await self._reconcile(f"Completion toggle of task {task_id}", exc)
            return self.board

    async def submit_delete(self, task_id: int) -> Board:
        async with self._lock:
            if self.board is None:
                await self.refresh()
            after = remove_task(self.board, task_id)
            if after is self.board:
                return self.board
            self.board = after
            try:
                await self.backend.delete_task(task_id)
                logger.info("Deleted task %d", task_id)
            except PersistenceError as exc:
                await self._reconcile(f"Delete of task {task_id}", exc)
            return self.board

    async def submit_create(self, column_id: int, title: str, **fields: Any) -> Board:
        """Create a task at the end of a column.

        The id comes from the backend, so the task is appended only after
        the create call returns.
        """
        async with self._lock:
            if self.board is None:
                await self.refresh()
            column = find_column(self.board, column_id)
            if column is None:
                logger.warning("Ignoring create in unknown column %d", column_id)
                return self.board
            try:
                task = await self.backend.create_task(
                    column_id, title, len(column.tasks) + 1, **fields,
                )
            except PersistenceError as exc:
                await self._reconcile(f"Create of task '{title}'", exc)
                return self.board
            # The created task lives where it was requested, whatever the payload says
            self.board = append_task(self.board, replace(task, column_id=column_id))
            logger.info("Created task %d in column %d", task.id, column_id)
            return self.board

    async def _persist_move(self, board: Board, instruction: MoveInstruction) -> None:
        found = find_task(board, instruction.task_id)
        # Position actually taken after clamping, 1-based for the backend
        new_order = found[1] + 1 if found else instruction.to_index + 1
        await self.backend.move_task(instruction.task_id, instruction.to_column_id, new_order)
        logger.info(
            "Moved task %d to column %d at position %d",
            instruction.task_id, instruction.to_column_id, new_order,
        )
