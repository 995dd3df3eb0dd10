"""Tests for src.core.board_mutation — pure moves and the optimistic coordinator."""

import random
from copy import deepcopy

import pytest

from src.core.board_mutation import (
    BoardCoordinator,
    MoveInstruction,
    append_task,
    apply_completion_toggle,
    apply_move,
    find_done_column,
    find_task,
    ordered_columns,
    remove_task,
)
from src.data.models import Board, Column, Task
from src.ports.persistence_port import PersistenceError
from tests.conftest import make_board


def _ids(board, column_id):
    col = next(c for c in board.columns if c.id == column_id)
    return [t.id for t in col.tasks]


def _assert_dense(board):
    for col in board.columns:
        assert [t.order for t in col.tasks] == list(range(1, len(col.tasks) + 1))
        assert all(t.column_id == col.id for t in col.tasks)


# ---------------------------------------------------------------------------
# Tests for apply_move
# ---------------------------------------------------------------------------


class TestApplyMove:
    def test_move_within_column(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(1, 10, 10, 2))
        assert _ids(board, 10) == [2, 3, 1]
        _assert_dense(board)

    def test_move_up_within_column(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(3, 10, 10, 0))
        assert _ids(board, 10) == [3, 1, 2]
        _assert_dense(board)

    def test_move_across_columns(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(1, 10, 20, 0))
        assert _ids(board, 10) == [2, 3]
        assert _ids(board, 20) == [1, 4]
        moved, idx = find_task(board, 1)
        assert moved.id == 20 and idx == 0
        _assert_dense(board)

    def test_same_position_returns_same_object(self, sample_board):
        instruction = MoveInstruction(2, 10, 10, 1)
        assert apply_move(sample_board, instruction) is sample_board

    def test_index_clamped_to_end(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(1, 10, 20, 99))
        assert _ids(board, 20) == [4, 1]
        _assert_dense(board)

    def test_negative_index_clamped_to_start(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(4, 20, 10, -3))
        assert _ids(board, 10) == [4, 1, 2, 3]
        _assert_dense(board)

    def test_move_into_empty_column(self):
        board = Board(id=1, name="b", columns=[
            Column(id=1, board_id=1, title="A", order=1, tasks=[
                Task(id=1, column_id=1, title="t", order=1),
            ]),
            Column(id=2, board_id=1, title="B", order=2),
        ])
        moved = apply_move(board, MoveInstruction(1, 1, 2, 0))
        assert _ids(moved, 1) == []
        assert _ids(moved, 2) == [1]

    def test_unknown_column_is_noop(self, sample_board):
        assert apply_move(sample_board, MoveInstruction(1, 10, 999, 0)) is sample_board
        assert apply_move(sample_board, MoveInstruction(1, 999, 20, 0)) is sample_board

    def test_task_not_in_source_is_noop(self, sample_board):
        assert apply_move(sample_board, MoveInstruction(4, 10, 20, 0)) is sample_board

    def test_input_board_untouched(self, sample_board):
        snapshot = deepcopy(sample_board)
        apply_move(sample_board, MoveInstruction(1, 10, 20, 0))
        assert sample_board == snapshot

    def test_untouched_columns_are_shared(self, sample_board):
        board = apply_move(sample_board, MoveInstruction(1, 10, 20, 0))
        assert board.columns[2] is sample_board.columns[2]

    def test_applying_twice_equals_once(self, sample_board):
        instruction = MoveInstruction(1, 10, 20, 1)
        once = apply_move(sample_board, instruction)
        twice = apply_move(once, instruction)
        assert twice is once
        assert twice == apply_move(make_board(), instruction)

    def test_renumbers_gappy_orders(self):
        board = Board(id=1, name="b", columns=[
            Column(id=1, board_id=1, title="A", order=1, tasks=[
                Task(id=1, column_id=1, title="a", order=3),
                Task(id=2, column_id=1, title="b", order=7),
                Task(id=3, column_id=1, title="c", order=7),
            ]),
        ])
        _assert_dense(apply_move(board, MoveInstruction(3, 1, 1, 0)))

    def test_random_moves_keep_orders_dense(self, sample_board):
        rng = random.Random(1234)
        board = sample_board
        for _ in range(300):
            col = rng.choice([c for c in board.columns if c.tasks])
            task = rng.choice(col.tasks)
            dest = rng.choice(board.columns)
            board = apply_move(
                board, MoveInstruction(task.id, col.id, dest.id, rng.randint(-1, 6)),
            )
            _assert_dense(board)
        assert sorted(t.id for c in board.columns for t in c.tasks) == [1, 2, 3, 4, 5]


# ---------------------------------------------------------------------------
# Tests for apply_completion_toggle and helpers
# ---------------------------------------------------------------------------


class TestCompletionToggle:
    def test_completing_moves_to_end_of_done(self, sample_board):
        board, instruction = apply_completion_toggle(sample_board, 2, True)
        assert instruction == MoveInstruction(2, 10, 30, 1)
        assert _ids(board, 30) == [5, 2]
        task_col, _ = find_task(board, 2)
        assert task_col.tasks[-1].is_completed is True
        _assert_dense(board)

    def test_completing_inside_done_does_not_move(self, sample_board):
        board, instruction = apply_completion_toggle(sample_board, 5, True)
        assert instruction is None
        assert _ids(board, 30) == [5]

    def test_uncompleting_stays_in_done(self, sample_board):
        board, instruction = apply_completion_toggle(sample_board, 5, False)
        assert instruction is None
        assert _ids(board, 30) == [5]
        assert board.columns[2].tasks[0].is_completed is False

    def test_no_done_column(self, sample_board):
        sample_board.columns[2].title = "Archive"
        board, instruction = apply_completion_toggle(sample_board, 1, True)
        assert instruction is None
        assert board.columns[0].tasks[0].is_completed is True

    def test_done_title_is_case_insensitive(self, sample_board):
        sample_board.columns[2].title = "DONE"
        _, instruction = apply_completion_toggle(sample_board, 1, True)
        assert instruction is not None
        assert instruction.to_column_id == 30

    def test_unknown_task(self, sample_board):
        board, instruction = apply_completion_toggle(sample_board, 404, True)
        assert board is sample_board
        assert instruction is None


class TestHelpers:
    def test_ordered_columns_puts_done_last(self, sample_board):
        sample_board.columns[2].order = 0
        assert [c.id for c in ordered_columns(sample_board)] == [10, 20, 30]

    def test_find_done_column(self, sample_board):
        assert find_done_column(sample_board).id == 30

    def test_remove_task_closes_gap(self, sample_board):
        board = remove_task(sample_board, 2)
        assert _ids(board, 10) == [1, 3]
        _assert_dense(board)

    def test_remove_unknown_task(self, sample_board):
        assert remove_task(sample_board, 404) is sample_board

    def test_append_task(self, sample_board):
        board = append_task(sample_board, Task(id=9, column_id=20, title="New", order=0))
        assert _ids(board, 20) == [4, 9]
        _assert_dense(board)


# ---------------------------------------------------------------------------
# Tests for BoardCoordinator
# ---------------------------------------------------------------------------


async def _loaded(backend):
    coordinator = BoardCoordinator(backend, board_id=1)
    await coordinator.refresh()
    backend.get_board_with_columns.reset_mock()
    return coordinator


class TestBoardCoordinator:
    @pytest.mark.asyncio
    async def test_move_is_optimistic_then_persisted(self, backend):
        coordinator = await _loaded(backend)

        board = await coordinator.submit_move(MoveInstruction(3, 10, 20, 0))

        assert _ids(board, 20) == [3, 4]
        backend.move_task.assert_awaited_once_with(3, 20, 1)
        backend.get_board_with_columns.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_move_sends_clamped_position(self, backend):
        coordinator = await _loaded(backend)
        await coordinator.submit_move(MoveInstruction(3, 10, 20, 50))
        backend.move_task.assert_awaited_once_with(3, 20, 2)

    @pytest.mark.asyncio
    async def test_failed_move_refetches_board(self, backend):
        coordinator = await _loaded(backend)
        backend.move_task.side_effect = PersistenceError("HTTP 500")

        board = await coordinator.submit_move(MoveInstruction(3, 10, 20, 0))

        backend.get_board_with_columns.assert_awaited_once_with(1)
        assert _ids(board, 10) == [1, 2, 3]
        assert _ids(board, 20) == [4]
        assert coordinator.board is board

    @pytest.mark.asyncio
    async def test_noop_move_makes_no_calls(self, backend):
        coordinator = await _loaded(backend)
        before = coordinator.board
        assert await coordinator.submit_move(MoveInstruction(1, 10, 10, 0)) is before
        backend.move_task.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_intent_loads_board(self, backend):
        coordinator = BoardCoordinator(backend, board_id=1)
        await coordinator.submit_move(MoveInstruction(1, 10, 20, 0))
        backend.get_board_with_columns.assert_awaited_once_with(1)
        backend.move_task.assert_awaited_once_with(1, 20, 1)

    @pytest.mark.asyncio
    async def test_completion_updates_then_moves_to_done(self, backend):
        coordinator = await _loaded(backend)

        board = await coordinator.submit_completion_toggle(4, True)

        backend.update_task.assert_awaited_once_with(4, {"is_completed": True})
        backend.move_task.assert_awaited_once_with(4, 30, 2)
        assert _ids(board, 30) == [5, 4]

    @pytest.mark.asyncio
    async def test_uncomplete_only_updates(self, backend):
        coordinator = await _loaded(backend)
        await coordinator.submit_completion_toggle(5, False)
        backend.update_task.assert_awaited_once_with(5, {"is_completed": False})
        backend.move_task.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_completion_refetches(self, backend):
        coordinator = await _loaded(backend)
        backend.update_task.side_effect = PersistenceError("timeout")

        board = await coordinator.submit_completion_toggle(4, True)

        backend.move_task.assert_not_awaited()
        backend.get_board_with_columns.assert_awaited_once()
        assert _ids(board, 20) == [4]

    @pytest.mark.asyncio
    async def test_failed_cascade_move_refetches(self, backend):
        coordinator = await _loaded(backend)
        backend.move_task.side_effect = PersistenceError("HTTP 502")

        await coordinator.submit_completion_toggle(1, True)

        backend.get_board_with_columns.assert_awaited_once()
        assert _ids(coordinator.board, 10) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_refetch_failure_propagates(self, backend):
        coordinator = await _loaded(backend)
        backend.move_task.side_effect = PersistenceError("HTTP 500")
        backend.get_board_with_columns.side_effect = PersistenceError("offline")

        with pytest.raises(PersistenceError):
            await coordinator.submit_move(MoveInstruction(3, 10, 20, 0))

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        coordinator = await _loaded(backend)
        board = await coordinator.submit_delete(2)
        backend.delete_task.assert_awaited_once_with(2)
        assert _ids(board, 10) == [1, 3]

    @pytest.mark.asyncio
    async def test_create_appends_backend_task(self, backend):
        backend.create_task.return_value = Task(id=77, column_id=20, title="Call bank", order=2)
        coordinator = await _loaded(backend)

        board = await coordinator.submit_create(20, "Call bank", estimated_time=15)

        backend.create_task.assert_awaited_once_with(20, "Call bank", 2, estimated_time=15)
        assert _ids(board, 20) == [4, 77]

    @pytest.mark.asyncio
    async def test_create_places_task_in_requested_column(self, backend):
        # The backend's task payload does not say which column it is in
        backend.create_task.return_value = Task(id=9, column_id=0, title="new", order=4)
        coordinator = await _loaded(backend)

        board = await coordinator.submit_create(10, "new")

        assert _ids(board, 10) == [1, 2, 3, 9]
        _assert_dense(board)

    @pytest.mark.asyncio
    async def test_create_in_unknown_column(self, backend):
        coordinator = await _loaded(backend)
        await coordinator.submit_create(999, "Nope")
        backend.create_task.assert_not_awaited()
