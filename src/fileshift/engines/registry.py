"""Registry of heavyweight engines loaded on demand.

Each engine is loaded at most once per process. Concurrent callers share one
in-flight load, and a failed engine stays failed until someone explicitly
asks for a retry.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from fileshift.errors import EngineLoadError, InvalidStateError, UnknownEngineError

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Lifecycle of a registered engine."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


_TRANSITIONS = {
    EngineState.NOT_LOADED: {EngineState.LOADING},
    EngineState.LOADING: {EngineState.READY, EngineState.FAILED},
    EngineState.READY: set(),
    EngineState.FAILED: {EngineState.NOT_LOADED},
}

EngineListener = Callable[[str, EngineState], None]


@dataclass(frozen=True)
class EngineSpec:
    """How to acquire one engine.

    ``load`` is a coroutine function returning the handle handlers use
    (an imported module, a wrapper around a binary, ...). It should raise
    on failure; the exception message becomes the engine's error.
    """

    name: str
    load: Callable[[], Awaitable[Any]]
    display_name: str = ""
    description: str = ""

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass
class _EngineEntry:
    spec: EngineSpec
    state: EngineState = EngineState.NOT_LOADED
    handle: Any = None
    error: Optional[str] = None
    load_count: int = 0
    task: Optional["asyncio.Task[EngineState]"] = None
    retry_waiters: list["asyncio.Future[None]"] = field(default_factory=list)


class EngineRegistry:
    """Process-wide table of named engines with single-flight loading."""

    def __init__(self, specs: Optional[Iterable[EngineSpec]] = None) -> None:
        self._entries: dict[str, _EngineEntry] = {}
        self._listeners: list[EngineListener] = []
        for spec in specs or ():
            self.register(spec)

    # ------------------------------------------------------------------
    # Registration and inspection
    # ------------------------------------------------------------------

    def register(self, spec: EngineSpec, replace: bool = False) -> None:
        """Register an engine.

        Args:
            spec: Engine description.
            replace: Overwrite an existing engine with the same name.

        Raises:
            ValueError: If the name is taken and ``replace`` is False.
        """
        if spec.name in self._entries and not replace:
            raise ValueError(f"Engine already registered: {spec.name}")
        self._entries[spec.name] = _EngineEntry(spec=spec)

    def names(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def spec(self, name: str) -> EngineSpec:
        return self._entry(name).spec

    def state(self, name: str) -> EngineState:
        return self._entry(name).state

    def is_ready(self, name: str) -> bool:
        return self._entry(name).state is EngineState.READY

    def error(self, name: str) -> Optional[str]:
        return self._entry(name).error

    def load_count(self, name: str) -> int:
        """Number of acquisitions actually started for *name*."""
        return self._entry(name).load_count

    def status(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every engine for display."""
        return {
            name: {
                "state": entry.state,
                "display_name": entry.spec.label,
                "description": entry.spec.description,
                "error": entry.error,
            }
            for name, entry in self._entries.items()
        }

    def add_listener(self, listener: EngineListener) -> Callable[[], None]:
        """Observe every state transition. Returns a function that unsubscribes."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def ensure_loaded(self, name: str) -> EngineState:
        """Load *name* if needed and wait for the outcome.

        Returns:
            ``EngineState.READY`` or ``EngineState.FAILED``. A failed engine
            is reported immediately without another load attempt.
        """
        entry = self._entry(name)
        if entry.state in (EngineState.READY, EngineState.FAILED):
            return entry.state

        if entry.task is None:
            self._transition(entry, EngineState.LOADING)
            entry.load_count += 1
            entry.task = asyncio.ensure_future(self._run_load(entry))

        # Waiters may be cancelled; the shared load must not be.
        return await asyncio.shield(entry.task)

    async def acquire(self, name: str) -> Any:
        """Return the handle for *name*, loading it first if necessary.

        Raises:
            EngineLoadError: If the engine is (or becomes) FAILED.
        """
        state = await self.ensure_loaded(name)
        entry = self._entry(name)
        if state is not EngineState.READY:
            raise EngineLoadError(entry.spec.label, entry.error)
        return entry.handle

    def preload(self, names: Iterable[str]) -> list["asyncio.Task[EngineState]"]:
        """Start loading *names* in the background. Requires a running loop."""
        tasks = []
        for name in names:
            self._entry(name)
            tasks.append(asyncio.ensure_future(self.ensure_loaded(name)))
        return tasks

    def retry(self, name: str) -> bool:
        """Move a FAILED engine back to NOT_LOADED and wake retry waiters.

        Returns:
            False when the engine was not FAILED.
        """
        entry = self._entry(name)
        if entry.state is not EngineState.FAILED:
            return False

        self._transition(entry, EngineState.NOT_LOADED)
        entry.error = None
        waiters, entry.retry_waiters = entry.retry_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        logger.info(f"Engine {name} scheduled for reload")
        return True

    async def wait_for_retry(self, name: str) -> None:
        """Wait until ``retry(name)`` is called.

        Returns immediately if the engine is not FAILED.
        """
        entry = self._entry(name)
        if entry.state is not EngineState.FAILED:
            return
        waiter = asyncio.get_running_loop().create_future()
        entry.retry_waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in entry.retry_waiters:
                entry.retry_waiters.remove(waiter)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_load(self, entry: _EngineEntry) -> EngineState:
        name = entry.spec.name
        logger.debug(f"Loading engine {name}")
        try:
            handle = await entry.spec.load()
        except asyncio.CancelledError:
            entry.error = "load cancelled"
            entry.task = None
            self._transition(entry, EngineState.FAILED)
            raise
        except Exception as e:
            entry.error = str(e) or e.__class__.__name__
            entry.task = None
            self._transition(entry, EngineState.FAILED)
            logger.warning(f"Engine {name} failed to load: {entry.error}")
            return entry.state

        entry.handle = handle
        entry.task = None
        self._transition(entry, EngineState.READY)
        logger.info(f"Engine {name} ready")
        return entry.state

    def _entry(self, name: str) -> _EngineEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownEngineError(name) from None

    def _transition(self, entry: _EngineEntry, new_state: EngineState) -> None:
        if new_state not in _TRANSITIONS[entry.state]:
            raise InvalidStateError(
                f"Engine {entry.spec.name}: illegal transition "
                f"{entry.state.value} -> {new_state.value}"
            )
        entry.state = new_state
        for listener in list(self._listeners):
            try:
                listener(entry.spec.name, new_state)
            except Exception:
                logger.exception(f"Engine listener failed for {entry.spec.name}")
