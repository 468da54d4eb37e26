"""
Teleprompter Script Session
===========================
Live state for one agent looking at one step: the current candidate list,
which index is showing, and which index is the agent's default.

Agent actions update local state immediately and queue a persistence command.
A failed command only produces a notification; local state is never rolled
back. Commands run strictly in the order they were queued.

Two timers are owned by the session and cancelled by close():
- the correction debounce, which coalesces index clamps when the list shrinks
  several times in a row (e.g. while alternatives are still loading)
- the cycle guard safety net, which clears the "agent is cycling" flag if the
  cycle's write never completes
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Sequence, Tuple

from .candidates import Candidate
from .config import settings
from .errors import DataStoreError, NotLoggedIn
from .notifications import Notifier
from .selection_store import SelectionStore, UserAction

logger = logging.getLogger(__name__)


@dataclass
class PersistCommand:
    """One queued side effect of an agent action"""
    description: str
    run: Callable[[], Awaitable]
    failure_message: str
    success_message: Optional[str] = None


class CommandQueue:
    """Runs persistence commands one after another, in submission order"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._tail: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, command: PersistCommand, on_done: Optional[Callable[[], None]] = None) -> Optional[asyncio.Task]:
        """Schedule a command behind everything already queued. Needs a running loop."""
        if self._closed:
            logger.debug(f"[Session] Dropped '{command.description}': session closed")
            if on_done:
                on_done()
            return None

        previous = self._tail

        async def _execute():
            if previous is not None:
                await previous
            try:
                await command.run()
                if command.success_message:
                    self.notifier.success(command.success_message)
            except DataStoreError as e:
                logger.error(f"[Session] {command.description} failed: {e}")
                self.notifier.error(command.failure_message)
            except Exception:
                logger.exception(f"[Session] {command.description} raised unexpectedly")
                self.notifier.error(command.failure_message)
            finally:
                if on_done:
                    on_done()

        self._tail = asyncio.ensure_future(_execute())
        return self._tail

    async def drain(self):
        """Wait for every queued command to finish"""
        while self._tail is not None and not self._tail.done():
            await self._tail

    def close(self):
        self._closed = True


class ScriptSession:
    def __init__(
        self,
        user_id: Optional[str],
        step_name: str,
        selections: SelectionStore,
        notifier: Optional[Notifier] = None,
        correction_debounce: Optional[float] = None,
        cycle_guard_timeout: Optional[float] = None,
    ):
        self.user_id = user_id
        self.step_name = step_name
        self.selections = selections
        self.notifier = notifier or Notifier()
        self.correction_debounce = settings.correction_debounce if correction_debounce is None else correction_debounce
        self.cycle_guard_timeout = settings.cycle_guard_timeout if cycle_guard_timeout is None else cycle_guard_timeout

        self.candidates: Tuple[Candidate, ...] = ()
        self.current_index: int = 0
        self.default_index: Optional[int] = None

        # Set by the display service: lead snapshot and what this step is showing
        self.context = None
        self.target = None

        self.commands = CommandQueue(self.notifier)
        self._restored = False
        self._cycling = False
        self._cycle_seq = 0
        self._guard_handle: Optional[asyncio.TimerHandle] = None
        self._correction_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self.last_used = time.monotonic()

    # ============ DERIVED STATE ============

    @property
    def total(self) -> int:
        return len(self.candidates)

    @property
    def safe_index(self) -> int:
        return self.current_index % self.total if self.total else 0

    @property
    def current(self) -> Optional[Candidate]:
        return self.candidates[self.safe_index] if self.candidates else None

    @property
    def is_cycling(self) -> bool:
        return self._cycling

    @property
    def restored(self) -> bool:
        return self._restored

    @property
    def correction_pending(self) -> bool:
        return self._correction_handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # ============ LIST CHANGES ============

    async def load(self, candidates: Sequence[Candidate]) -> None:
        """
        Attach a freshly built candidate list. The first non-empty list restores
        the stored selection; later lists are re-validated against the store
        unless the agent is in the middle of cycling.
        """
        self.candidates = tuple(candidates)
        if not self.candidates:
            return

        self._clamp_local()

        if not self._restored:
            await self._restore()
        elif not self._cycling:
            await self._revalidate()

    async def _restore(self):
        try:
            restoration = await self.selections.restore(self.user_id, self.step_name, self.total)
        except DataStoreError as e:
            logger.error(f"[Session] Could not load saved selection for {self.step_name}: {e}")
            self._restored = True
            return

        self.current_index = restoration.index
        self.default_index = restoration.default_index
        self._restored = True
        if restoration.corrected and not restoration.persisted:
            self.notifier.warning("Could not save your script position")

    async def _revalidate(self):
        if not self.user_id:
            return
        try:
            entry = await self.selections.get(self.user_id, self.step_name)
        except DataStoreError as e:
            logger.error(f"[Session] Could not validate index for {self.step_name}: {e}")
            return
        if entry is None:
            return

        if entry.default_index is not None and 0 <= entry.default_index < self.total:
            self.current_index = entry.default_index
            self.default_index = entry.default_index
            return

        if 0 <= entry.selected_index < self.total:
            self.current_index = entry.selected_index
        elif entry.selected_index >= self.total:
            self.current_index = self.total - 1
            self._schedule_correction(self.current_index)

    def _clamp_local(self):
        if self.current_index >= self.total:
            valid = self.total - 1
            logger.warning(
                f"[Session] {self.step_name}: index {self.current_index} past end of "
                f"{self.total} candidates, clamping to {valid}"
            )
            self.current_index = valid
            self._schedule_correction(valid)

    def _schedule_correction(self, index: int):
        """Debounced write of a clamped index; a newer correction replaces a pending one"""
        if self._closed or not self.user_id:
            return
        if self._correction_handle is not None:
            self._correction_handle.cancel()
        loop = asyncio.get_running_loop()
        self._correction_handle = loop.call_later(self.correction_debounce, self._fire_correction, index)

    def _fire_correction(self, index: int):
        self._correction_handle = None
        total = self.total
        self.commands.submit(PersistCommand(
            description=f"save corrected index {index} for {self.step_name}",
            run=lambda: self.selections.set_selected(self.user_id, self.step_name, index, total),
            failure_message="Could not save your script position",
        ))

    # ============ AGENT ACTIONS ============

    def cycle(self) -> int:
        """Show the next candidate. Local state changes now; the write is queued."""
        if self.total < 2:
            return self.safe_index

        next_index = (self.safe_index + 1) % self.total
        self.current_index = next_index

        if not self.user_id:
            return next_index

        self._cycling = True
        self._cycle_seq += 1
        seq = self._cycle_seq
        loop = asyncio.get_running_loop()
        if self._guard_handle is not None:
            self._guard_handle.cancel()
        self._guard_handle = loop.call_later(self.cycle_guard_timeout, self._clear_cycling)

        total = self.total
        self.commands.submit(
            PersistCommand(
                description=f"save cycled index {next_index} for {self.step_name}",
                run=lambda: self.selections.set_selected(
                    self.user_id, self.step_name, next_index, total, action=UserAction.CYCLED
                ),
                failure_message="Failed to save spiel selection",
            ),
            on_done=lambda: self._cycle_write_done(seq),
        )
        return next_index

    def _cycle_write_done(self, seq: int):
        # Only the newest cycle's write ends the cycling state
        if seq == self._cycle_seq:
            self._clear_cycling()

    def _clear_cycling(self):
        self._cycling = False
        if self._guard_handle is not None:
            self._guard_handle.cancel()
            self._guard_handle = None

    def set_default(self, index: int, total: Optional[int] = None, show: bool = False, quiet: bool = False) -> None:
        """
        Mark `index` as this agent's default for the step. `total` may exceed the
        current list when the default is a candidate that is about to appear.
        """
        if not self.user_id:
            raise NotLoggedIn("Please log in to set default")
        total = self.total if total is None else total
        if not 0 <= index < max(total, 1):
            raise ValueError(f"Index {index} out of range for {total} candidates")

        self.default_index = index
        if show:
            self.current_index = index

        self.commands.submit(PersistCommand(
            description=f"set default {index} for {self.step_name}",
            run=lambda: self.selections.set_default(self.user_id, self.step_name, index, total),
            failure_message="Failed to set default",
            success_message=None if quiet else "Set as default",
        ))

    async def flush(self):
        """Wait for queued writes (used before re-reading the store)"""
        await self.commands.drain()

    def close(self):
        """Stop scheduling writes; in-flight writes are left to finish"""
        self._closed = True
        if self._correction_handle is not None:
            self._correction_handle.cancel()
            self._correction_handle = None
        if self._guard_handle is not None:
            self._guard_handle.cancel()
            self._guard_handle = None
        self.commands.close()
        logger.debug(f"[Session] Closed {self.user_id}/{self.step_name}")


class SessionManager:
    """
    Open script sessions keyed by (user id, step name). Agents rarely close
    their sessions explicitly, so sessions idle longer than `idle_timeout`
    are closed and dropped whenever a new one is opened.
    """

    def __init__(self, idle_timeout: Optional[float] = None):
        self._sessions: Dict[Tuple[str, str], ScriptSession] = {}
        self.idle_timeout = settings.session_idle_timeout if idle_timeout is None else idle_timeout

    def get(self, user_id: Optional[str], step_name: str) -> Optional[ScriptSession]:
        session = self._sessions.get((user_id or "", step_name))
        if session is not None:
            session.last_used = time.monotonic()
        return session

    def get_or_create(self, user_id: Optional[str], step_name: str, selections: SelectionStore) -> ScriptSession:
        key = (user_id or "", step_name)
        session = self._sessions.get(key)
        if session is None or session.closed:
            self.evict_idle()
            session = ScriptSession(user_id, step_name, selections)
            self._sessions[key] = session
            logger.info(f"[Session] Opened {key[0] or 'anonymous'}/{step_name}")
        session.last_used = time.monotonic()
        return session

    def evict_idle(self) -> int:
        """Close and drop sessions nobody has touched within the idle timeout"""
        if not self.idle_timeout:
            return 0
        cutoff = time.monotonic() - self.idle_timeout
        idle = [key for key, session in self._sessions.items() if session.last_used < cutoff]
        for key in idle:
            self._sessions.pop(key).close()
        if idle:
            logger.info(f"[Session] Evicted {len(idle)} idle session(s)")
        return len(idle)

    def remove(self, user_id: Optional[str], step_name: str) -> bool:
        session = self._sessions.pop((user_id or "", step_name), None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self):
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# Global session manager instance
session_manager = SessionManager()
