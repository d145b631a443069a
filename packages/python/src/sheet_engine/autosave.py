import logging
import threading
from typing import Any, Callable

from sheet_engine.grid import Grid

SaveCallback = Callable[[str, Grid, list[str]], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class AutosaveScheduler:
    """Trailing-edge debounce in front of a save callback.

    Every `schedule` call restarts the quiet window with a snapshot of the
    latest grid; when the window elapses without another call, that snapshot
    alone is saved. Snapshots are taken on the caller's thread, the save runs
    on the timer's.
    """

    def __init__(
        self,
        save: SaveCallback,
        spreadsheet_id: str,
        delay: float = 2.0,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.save = save
        self.spreadsheet_id = spreadsheet_id
        self.delay = delay
        self.timer_factory = timer_factory
        self.last_error: Exception | None = None
        self.closed = False
        self._lock = threading.Lock()
        self._timer: Any = None
        self._pending: Grid | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, grid: Grid) -> None:
        if self.closed:
            logging.debug("Autosave for %s is closed, edit not scheduled", self.spreadsheet_id)
            return
        snapshot = grid.copy()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = snapshot
            self._timer = self.timer_factory(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _take_pending(self) -> Grid | None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            grid, self._pending = self._pending, None
            return grid

    def _fire(self) -> None:
        grid = self._take_pending()
        if grid is not None:
            self._save(grid)

    def _save(self, grid: Grid) -> bool:
        try:
            self.save(self.spreadsheet_id, grid, list(grid.columns))
        except Exception as e:
            # The in-memory grid is untouched; the next edit schedules a retry
            logging.exception("Autosave of spreadsheet %s failed", self.spreadsheet_id)
            self.last_error = e
            return False
        self.last_error = None
        return True

    def flush(self) -> bool:
        """Save the pending snapshot now. Returns False if there was none or it failed."""
        grid = self._take_pending()
        if grid is None:
            return False
        return self._save(grid)

    def save_now(self, grid: Grid) -> bool:
        """Save the given grid immediately, dropping any pending snapshot."""
        self._take_pending()
        return self._save(grid.copy())

    def cancel(self) -> None:
        """Drop the pending save, if any."""
        if self._take_pending() is not None:
            logging.debug("Pending autosave of %s cancelled", self.spreadsheet_id)

    def close(self) -> None:
        self.cancel()
        self.closed = True
