"""
Check Cycle Controller
======================
Drives the periodic snapshot -> diff -> batch -> submit -> resolve ->
reconcile cycle for one document, and keeps the process-wide registry of
checked documents.

Concurrency:
- A threading.Timer fires one tick per check_interval while enabled.
- Snapshot, diff and mapping run synchronously inside the tick.
- The service call runs on an executor; its result is reconciled on the
  worker thread under the controller lock.
- A tick that finds a submission in flight is skipped (single flight).
- Each session carries a generation; responses for an older generation
  are discarded.
"""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Optional, Sequence

from config_logging import (
    get_logger, get_config, CheckerConfig, LiveCheckError,
    CheckServiceError, SessionError, StructuredLogger
)

from .batcher import IncrementalBatcher
from .client import LanguageToolClient
from .differ import LineDiffer
from .document import EditorDocument, TextDocument
from .models import Annotation, OffsetMapEntry, Snapshot
from .offset_map import build_offset_map
from .session import CheckSession, CheckState

logger = get_logger('live_check.controller')


class CheckCycleController:
    """
    Runs check cycles for a single document.

    Usage:
        controller = CheckCycleController(doc, LanguageToolClient.from_config(config))
        controller.enable()        # starts the timer
        ...
        controller.disable()       # clears annotations, discards the session
    """

    def __init__(
        self,
        document: EditorDocument,
        client: LanguageToolClient,
        document_id: Optional[str] = None,
        config: Optional[CheckerConfig] = None,
        batcher: Optional[IncrementalBatcher] = None,
        differ: Optional[LineDiffer] = None,
        executor: Optional[Executor] = None,
        notify: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the controller.

        Args:
            document: Document to check
            client: Checking service client
            document_id: Registry identity (defaults to document.document_id)
            config: Checker configuration (defaults to the global config)
            batcher: Incremental batcher (defaults to config.block_size blocks)
            differ: Line differ
            executor: Executor for service calls (defaults to one worker thread)
            notify: Callback for transient user-facing messages
        """
        self.document = document
        self.client = client
        self.document_id = document_id or getattr(document, 'document_id', None) or f"doc-{id(document):x}"
        self.config = config or get_config()
        self.batcher = batcher or IncrementalBatcher(self.config.block_size)
        self.differ = differ or LineDiffer()
        self.notify = notify or self._log_notice
        self.session: Optional[CheckSession] = None

        self._executor = executor
        self._owns_executor = executor is None
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()

    @staticmethod
    def _log_notice(message: str):
        logger.warning(message)

    @property
    def enabled(self) -> bool:
        return self.session is not None

    @property
    def annotations(self) -> List[Annotation]:
        session = self.session
        return session.annotations.annotations if session else []

    def require_session(self) -> CheckSession:
        """
        Return the open session.

        Raises:
            SessionError: checking is not enabled (or was disabled meanwhile)
        """
        session = self.session
        if session is None:
            raise SessionError(f"Checking is not enabled for {self.document_id}",
                               document_id=self.document_id, status_code=409)
        return session

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='live-check')
        return self._executor

    # -------------------------------------------------------------------------
    # Enable / disable
    # -------------------------------------------------------------------------

    def enable(self, start_timer: bool = True) -> CheckSession:
        """Open a session (if none) and start the periodic timer."""
        with self._lock:
            if self.session is None:
                self._generation += 1
                self.session = CheckSession.open(self.document_id, self.document,
                                                 generation=self._generation)
                logger.info(f"Checking enabled for {self.document_id}",
                            generation=self._generation)
            if start_timer and self._timer is None:
                self._schedule()
            return self.session

    def disable(self):
        """Clear every annotation, stop the timer and discard the session."""
        with self._lock:
            self._cancel_timer()
            session, self.session = self.session, None
            self._generation += 1
            if session is not None:
                session.annotations.clear_all()
                logger.info(f"Checking disabled for {self.document_id}",
                            cycles=session.cycle)

    def close(self):
        """Disable and release the executor this controller created."""
        self.disable()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # -------------------------------------------------------------------------
    # Timer
    # -------------------------------------------------------------------------

    def _schedule(self):
        self._timer = threading.Timer(self.config.check_interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self):
        """Timer callback: run one cycle and re-arm while enabled."""
        try:
            self.run_cycle()
        except Exception as e:
            logger.exception(f"Check cycle failed for {self.document_id}: {e}")
        finally:
            with self._lock:
                if self.session is not None and self._timer is not None:
                    self._schedule()

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    def run_cycle(self) -> Optional[Future]:
        """
        Run the synchronous part of one cycle.

        Returns:
            Future for the in-flight check, or None when nothing was submitted
        """
        with self._lock:
            session = self.session
            if session is None:
                return None
            if session.awaiting_response:
                logger.debug(f"Skipping tick for {self.document_id}: check still in flight")
                return None

            session.cycle += 1
            correlation_id = f"{self.document_id}-{session.generation}-{session.cycle}"
            StructuredLogger.set_correlation_id(correlation_id)

            try:
                with logger.log_operation('check_cycle', document=self.document_id,
                                          cycle=session.cycle):
                    return self._start_cycle(session, correlation_id)
            except Exception:
                session.state = CheckState.IDLE
                raise

    def _start_cycle(self, session: CheckSession, correlation_id: str) -> Optional[Future]:
        """Sample, diff, map and dispatch; caller holds the lock."""
        session.state = CheckState.SAMPLING
        text = self.document.get_text()
        line_numbers = session.annotations.line_numbers_in(text)
        bound = self.batcher.snapshot_bound(session.batch, len(text))
        session.current = Snapshot(text[:bound])

        session.state = CheckState.DIFFING
        changes = self.differ.diff_lines(session.previous.text, session.current.text)
        session.changes = changes

        if changes.added:
            session.state = CheckState.MAPPING
            submission, entries = build_offset_map(self.document, changes.added)
        else:
            submission, entries = "", []
        session.submission_text = submission
        session.offset_map = entries

        session.commit_baseline()

        if not submission:
            if changes.deleted:
                session.state = CheckState.RECONCILING
                session.annotations.reconcile([], [], changes.deleted, line_numbers)
            else:
                session.annotations.renumber(line_numbers)
            session.state = CheckState.IDLE
            return None

        session.state = CheckState.AWAITING_RESPONSE
        logger.info(f"Submitting {len(entries)} line(s), {len(submission)} chars",
                    deleted=len(changes.deleted))
        return self._get_executor().submit(
            self._check_and_reconcile,
            session.generation,
            submission,
            tuple(entries),
            changes.deleted,
            line_numbers,
            correlation_id,
        )

    def _check_and_reconcile(
        self,
        generation: int,
        submission: str,
        entries: Sequence[OffsetMapEntry],
        deleted: Sequence[int],
        line_numbers: Dict[str, int],
        correlation_id: str
    ) -> List[Annotation]:
        """Call the service, then reconcile the response if still current."""
        StructuredLogger.set_correlation_id(correlation_id)
        error: Optional[Exception] = None
        response = None
        try:
            response = self.client.check(submission)
        except LiveCheckError as e:
            error = e
        except Exception as e:
            logger.exception(f"Unexpected error from checking service: {e}")
            error = e

        with self._lock:
            session = self.session
            if session is None or session.generation != generation:
                logger.warning(f"Discarding response for stale generation {generation}")
                return []

            if error is not None:
                message = getattr(error, 'message', None) or str(error)
                session.annotations.renumber(line_numbers)
                session.last_error = message
                session.state = CheckState.IDLE
                logger.warning(f"Check failed for {self.document_id}: {message}")
                self.notify(f"LiveCheck: {message}")
                return []

            session.state = CheckState.RECONCILING
            created = session.annotations.reconcile(response.matches, entries, deleted,
                                                     line_numbers)
            session.last_error = None
            session.state = CheckState.IDLE
            return created

    def check_now(self, timeout: Optional[float] = None) -> CheckSession:
        """
        Run one cycle and wait for its response to be reconciled.

        Raises:
            SessionError: checking is not enabled
            CheckServiceError: the reconciliation did not finish in time
        """
        self.require_session()
        future = self.run_cycle()
        if future is not None:
            wait = timeout if timeout is not None else self.config.request_timeout + 1.0
            try:
                future.result(timeout=wait)
            except FutureTimeoutError:
                raise CheckServiceError(f"Check did not complete within {wait}s",
                                        service_url=self.client.service_url)
        return self.require_session()


# =============================================================================
# DOCUMENT REGISTRY
# =============================================================================

class CheckManager:
    """
    Process-wide mapping from document id to document and controller.

    A controller exists only while checking is enabled for its document.
    """

    def __init__(
        self,
        config: Optional[CheckerConfig] = None,
        client: Optional[LanguageToolClient] = None,
        executor: Optional[Executor] = None,
        notify: Optional[Callable[[str], None]] = None
    ):
        self.config = config or get_config()
        self._client = client
        self._executor = executor
        self._notify = notify
        self._documents: Dict[str, EditorDocument] = {}
        self._controllers: Dict[str, CheckCycleController] = {}
        self._lock = threading.RLock()

    @property
    def client(self) -> LanguageToolClient:
        if self._client is None:
            self._client = LanguageToolClient.from_config(self.config)
        return self._client

    def open_document(self, document_id: str, text: str = "") -> EditorDocument:
        """Register a document, or return the one already registered."""
        with self._lock:
            if document_id not in self._documents:
                self._documents[document_id] = TextDocument(text, document_id=document_id)
                logger.debug(f"Opened document {document_id}")
            return self._documents[document_id]

    def get_document(self, document_id: str) -> EditorDocument:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise SessionError(f"Unknown document: {document_id}", document_id=document_id)
        return document

    def enable(self, document_id: str, start_timer: bool = True) -> CheckCycleController:
        with self._lock:
            document = self.get_document(document_id)
            controller = self._controllers.get(document_id)
            if controller is None:
                controller = CheckCycleController(
                    document,
                    self.client,
                    document_id=document_id,
                    config=self.config,
                    executor=self._executor,
                    notify=self._notify,
                )
                self._controllers[document_id] = controller
            controller.enable(start_timer=start_timer)
            return controller

    def disable(self, document_id: str):
        with self._lock:
            controller = self._controllers.pop(document_id, None)
        if controller is not None:
            controller.close()

    def controller(self, document_id: str) -> CheckCycleController:
        with self._lock:
            controller = self._controllers.get(document_id)
        if controller is None:
            raise SessionError(f"Checking is not enabled for {document_id}",
                               document_id=document_id, status_code=409)
        return controller

    def is_enabled(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._controllers

    def shutdown(self):
        """Disable every document."""
        with self._lock:
            document_ids = list(self._controllers)
        for document_id in document_ids:
            self.disable(document_id)


# Global manager instance
_manager: Optional[CheckManager] = None
_manager_lock = threading.Lock()


def get_check_manager() -> CheckManager:
    """Get or create the global check manager."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = CheckManager()
    return _manager


def reset_check_manager():
    """Shut down and drop the global check manager (for testing)."""
    global _manager
    with _manager_lock:
        if _manager is not None:
            _manager.shutdown()
        _manager = None
