"""
Taskflow — Entry Point.

Single entry point: `python main.py [day|week]` prints today's calendar,
the default board and the active timer from the configured backend.
"""

import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.adapters.backend_factory import create_backend
from src.core.agenda import format_board, format_grid, format_timer
from src.core.board_mutation import BoardCoordinator
from src.core.calendar_view import CalendarView
from src.core.timer_session import TimerEngine

logger = logging.getLogger(__name__)


async def main(view_mode: str = "day") -> None:
    backend = create_backend()

    calendar = CalendarView(backend)
    calendar.view_mode = view_mode
    board = BoardCoordinator(backend)
    timer = TimerEngine(backend)

    try:
        await calendar.load()
        await board.refresh()
        await timer.load_active()

        print(format_grid(calendar.grid(), calendar.tz))
        print()
        print(format_board(board.board))
        print()
        print(format_timer(timer.display()))
    except Exception as exc:
        logger.error("Failed to load agenda: %s", exc)
        raise SystemExit(1) from exc
    finally:
        await timer.close()


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "day"
    asyncio.run(main(mode))
