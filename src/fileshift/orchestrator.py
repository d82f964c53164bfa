"""Selection -> preview -> conversion -> delivery lifecycle.

The orchestrator owns exactly one live SelectionSession. A new selection or
a reset discards the current session; work started for a discarded session
keeps running in the background but nothing it produces (results, progress,
errors) reaches the view any more.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Optional

from fileshift.config import Settings, get_settings
from fileshift.converters import BaseHandler, ConversionResult, Representation, create_handler
from fileshift.delivery import Delivery, DirectoryDelivery
from fileshift.engines import EngineRegistry, EngineState, create_engine_registry
from fileshift.errors import EngineLoadError, InvalidStateError, UnsupportedTypeError
from fileshift.files import SourceFile
from fileshift.routing import Capability, TypeResolver, get_resolver, normalize_format
from fileshift.status import ConversionStatus, ProgressCallback, sanitize_terminal_text
from fileshift.view import ERROR, INFO, WARNING, ConversionView

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Unsupported file type or the type could not be determined."
ENGINES_READY_MESSAGE = "Converter engines are ready!"


class OrchestratorState(Enum):
    IDLE = "idle"
    FILE_STAGED = "file_staged"
    PREVIEW_READY = "preview_ready"
    AWAITING_ENGINE = "awaiting_engine"
    CONVERTING = "converting"
    DELIVERED = "delivered"


@dataclass(frozen=True)
class SelectionSession:
    """The staged file and everything derived from it.

    Sessions are replaced, never mutated. Every replacement made with
    ``dataclasses.replace`` shares the same ``discarded`` event, so
    discarding one version discards the whole session.
    """

    file: SourceFile
    capability: Capability
    token: int
    offered_formats: tuple[str, ...] = ()
    chosen_output_format: Optional[str] = None
    preview: Optional[Representation] = None
    discarded: asyncio.Event = field(default_factory=asyncio.Event, compare=False, repr=False)

    @property
    def is_discarded(self) -> bool:
        return self.discarded.is_set()


class SessionDiscarded(Exception):
    """The session being observed was reset or replaced."""


def _log_abandoned(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Work for a discarded session failed: {error!r}")


class ConversionOrchestrator:
    """Drive one file at a time through preview, conversion and delivery."""

    def __init__(
        self,
        view: Optional[ConversionView] = None,
        delivery: Optional[Delivery] = None,
        engines: Optional[EngineRegistry] = None,
        resolver: Optional[TypeResolver] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.view = view or ConversionView()
        self.delivery = delivery or DirectoryDelivery(self.settings.resolved_output_dir)
        self.engines = engines or create_engine_registry(self.settings)
        self.resolver = resolver or get_resolver()

        self._state = OrchestratorState.IDLE
        self._session: Optional[SelectionSession] = None
        self._handler: Optional[BaseHandler] = None
        self._status: Optional[ConversionStatus] = None
        self._last_error: Optional[BaseException] = None
        self._attempt_failed = False
        self._tokens = itertools.count(1)

        self.engines.add_listener(self._on_engine_state)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def session(self) -> Optional[SelectionSession]:
        return self._session

    @property
    def status(self) -> Optional[ConversionStatus]:
        return self._status

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> dict[str, EngineState]:
        """Preload the configured engines and report the outcome."""
        names = []
        for name in self.settings.preload_engines:
            if name in self.engines:
                names.append(name)
            else:
                logger.warning(f"Ignoring unknown engine in preload_engines: {name}")

        states = await asyncio.gather(*self.engines.preload(names))
        outcome = dict(zip(names, states))
        if all(state is EngineState.READY for state in outcome.values()):
            self.view.notify(ENGINES_READY_MESSAGE, INFO)
        return outcome

    async def select(self, file: SourceFile) -> Optional[SelectionSession]:
        """
        Stage a file and render its preview.

        Args:
            file: The selected file. Replaces any staged file.

        Returns:
            The new session, or None if the type is unsupported or the
            session was discarded before its preview finished.
        """
        self._discard()

        capability = self.resolver.resolve_file(file)
        if capability is None:
            logger.info(f"Rejected {file.name!r} (declared {file.media_type!r})")
            self.reset()
            self._last_error = UnsupportedTypeError(file.name, file.media_type)
            self.view.notify(UNSUPPORTED_MESSAGE, ERROR)
            return None

        handler = create_handler(capability, self.engines, self.settings)
        session = SelectionSession(
            file=file,
            capability=capability,
            token=next(self._tokens),
            offered_formats=tuple(capability.offered_formats(file.name)),
        )
        self._session = session
        self._handler = handler
        self._state = OrchestratorState.FILE_STAGED
        self._status = None
        self._last_error = None
        self._attempt_failed = False
        self.view.show_file(session)

        try:
            preview = await self._observe(session, handler.preview(file))
        except SessionDiscarded:
            return None
        except Exception as e:
            # Preview failures never block conversion
            logger.info(f"Preview of {file.name} failed: {e}")
            preview = Representation.placeholder(
                f"Preview unavailable: {sanitize_terminal_text(e) or type(e).__name__}"
            )

        session = replace(session, preview=preview)
        self._session = session
        self._state = OrchestratorState.PREVIEW_READY
        self.view.render_preview(session, preview)
        self.view.show_formats(session, session.offered_formats)
        return session

    async def convert(self, output_format: str) -> Optional[ConversionResult]:
        """
        Convert the staged file and deliver the output.

        Args:
            output_format: One of the session's offered formats.

        Returns:
            The delivered result, or None if the conversion failed (see
            ``last_error``) or the session was discarded meanwhile.

        Raises:
            InvalidStateError: If no file is ready for conversion.
            ValueError: If the format is not offered for the staged file.
        """
        session = self._session
        ready = self._state in (OrchestratorState.PREVIEW_READY, OrchestratorState.DELIVERED) or (
            self._state is OrchestratorState.FILE_STAGED and self._attempt_failed
        )
        if session is None or not ready:
            raise InvalidStateError(f"Cannot convert while {self._state.value}")

        fmt = normalize_format(output_format)
        if fmt not in session.offered_formats:
            raise ValueError(
                f"{output_format!r} is not offered for {session.file.name}; "
                f"choose one of: {', '.join(session.offered_formats)}"
            )

        session = replace(session, chosen_output_format=fmt)
        self._session = session
        self._last_error = None
        self.view.hide_formats()

        try:
            for engine_name in session.capability.engines_for(fmt):
                if not self.engines.is_ready(engine_name):
                    await self._await_engine(session, engine_name)

            self._state = OrchestratorState.CONVERTING
            self._report(session, ConversionStatus.starting())
            result = await self._observe(
                session,
                self._handler.convert(session.file, fmt, progress=self._progress_for(session)),
            )
            location = self.delivery.deliver(result.data, result.filename, result.mime_type)
        except SessionDiscarded:
            return None
        except Exception as e:
            self._fail(session, e)
            return None

        self._state = OrchestratorState.DELIVERED
        self._attempt_failed = False
        self._report(session, ConversionStatus.complete())
        if result.notice:
            self.view.notify(result.notice, WARNING)
        self.view.show_completion(session, result, location)
        self.view.show_formats(session, session.offered_formats)
        return result

    def reset(self) -> None:
        """Return to IDLE from any state, abandoning in-flight work."""
        self._discard()
        self._session = None
        self._handler = None
        self._status = None
        self._attempt_failed = False
        self._state = OrchestratorState.IDLE
        self.view.reset()

    def retry_engine(self, name: Optional[str] = None) -> bool:
        """Explicitly reload a failed engine.

        Without a name, the failed engines of the staged file are retried:
        those the chosen format needs, or all of the capability's engines
        before a format has been chosen.
        """
        if name is not None:
            return self.engines.retry(name)
        session = self._session
        if session is None:
            return False
        if session.chosen_output_format is not None:
            names = session.capability.engines_for(session.chosen_output_format)
        else:
            names = session.capability.engine_names
        retried = [
            engine for engine in names if engine in self.engines and self.engines.retry(engine)
        ]
        return bool(retried)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _await_engine(self, session: SelectionSession, name: str) -> None:
        """Block until *name* is READY; a failed engine waits for a retry."""
        self._state = OrchestratorState.AWAITING_ENGINE
        label = self.engines.spec(name).label
        self._report(session, ConversionStatus.waiting_engine(label))

        while True:
            state = await self._observe(session, self.engines.ensure_loaded(name), abandon=True)
            if state is EngineState.READY:
                return

            error = self.engines.error(name)
            self._last_error = EngineLoadError(label, error)
            self._report(session, ConversionStatus.waiting_engine(label))
            self.view.engine_unavailable(name, error)
            await self._observe(session, self.engines.wait_for_retry(name), abandon=True)

    async def _observe(
        self, session: SelectionSession, awaitable: Awaitable[Any], abandon: bool = False
    ) -> Any:
        """Await *awaitable* unless the session is discarded first.

        Args:
            session: Session the work belongs to.
            awaitable: The work.
            abandon: Cancel the work when the session is discarded. Waits are
                abandoned; handler work is left to finish on its own.

        Raises:
            SessionDiscarded: If the session was discarded first.
        """
        task = asyncio.ensure_future(awaitable)
        discarded = asyncio.ensure_future(session.discarded.wait())
        try:
            await asyncio.wait({task, discarded}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            discarded.cancel()

        if session.is_discarded:
            if abandon:
                task.cancel()
            task.add_done_callback(_log_abandoned)
            raise SessionDiscarded()
        return task.result()

    def _progress_for(self, session: SelectionSession) -> ProgressCallback:
        def report(fraction: float) -> None:
            if self._state is OrchestratorState.CONVERTING:
                self._report(session, ConversionStatus.converting(fraction))

        return report

    def _is_active(self, session: SelectionSession) -> bool:
        return (
            self._session is not None
            and self._session.token == session.token
            and not session.is_discarded
        )

    def _report(self, session: SelectionSession, status: ConversionStatus) -> None:
        if not self._is_active(session):
            return
        self._status = status
        self.view.report_status(status)

    def _fail(self, session: SelectionSession, error: BaseException) -> None:
        message = sanitize_terminal_text(error) or type(error).__name__
        logger.warning(f"Conversion of {session.file.name} failed: {message}")
        self._last_error = error
        self._attempt_failed = True
        self._state = OrchestratorState.FILE_STAGED
        percent = self._status.percent if self._status else 0
        self._report(session, ConversionStatus.failed(message, percent))
        self.view.show_formats(session, session.offered_formats)

    def _discard(self) -> None:
        if self._session is not None:
            self._session.discarded.set()

    def _on_engine_state(self, name: str, state: EngineState) -> None:
        if state is EngineState.FAILED:
            label = self.engines.spec(name).label
            self.view.notify(f"Error: {label} converter failed to load.", ERROR)
