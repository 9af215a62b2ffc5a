"""
Background compute unit for simulation requests.

A request is handled synchronously by :func:`handle_request`, which emits
zero or more ``PROGRESS`` messages followed by exactly one ``COMPLETE`` or
``ERROR`` message. :class:`ComputeUnit` runs that handler in a dedicated
process so the caller never blocks on the numeric loop.

There is no cooperative cancellation: the only way to stop a running request
is :meth:`ComputeUnit.terminate`, which kills the whole unit and fails every
request still pending on it.
"""

import multiprocessing
import queue
import threading
import uuid
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config import EngineSettings
from models import (
    CompletionMessage,
    ErrorMessage,
    ProgressMessage,
    WireModel,
    parse_message,
    parse_request,
)
from sampler import make_sampler
from simulation import STRATEGIES, MonteCarloStrategy
from utils import (
    _generate_seed_from_timestamp,
    configure_logging,
    log_request_parameters,
    log_simulation_results,
)

Emit = Callable[[dict], None]


class RequestState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SimulationFailed(Exception):
    """The compute unit answered a request with an ERROR message."""


class ComputeUnitTerminated(Exception):
    """The compute unit stopped before answering a request."""


def _message_to_wire(message: WireModel) -> dict:
    wire = message.to_wire()
    if wire.get("requestId") is None:
        wire.pop("requestId", None)
    return wire


def _result_to_wire(result: Any) -> Any:
    if isinstance(result, list):
        return [item.to_wire() for item in result]
    return result.to_wire()


def build_simulator(request: Any, settings: EngineSettings) -> MonteCarloStrategy:
    """Strategy for the request's kind with a freshly seeded sampler."""
    strategy_cls = STRATEGIES[request.kind]
    seed = request.seed if request.seed is not None else _generate_seed_from_timestamp()
    sampler = make_sampler(request.sampler or strategy_cls.default_sampler, seed)
    logger.info(f"{request.kind} request using {sampler.name} sampler with seed {seed}")
    return strategy_cls(request.params, sampler=sampler, settings=settings)


def handle_request(
    payload: Any,
    emit: Emit,
    settings: Optional[EngineSettings] = None,
    request_id: Optional[str] = None,
) -> dict:
    """
    Runs one request to completion and emits its messages through ``emit``.

    Exceptions never escape: anything raised while parsing or simulating is
    reported as a single ERROR message. The terminal message is also returned.
    """
    settings = settings or EngineSettings()

    def _progress(percent: int) -> None:
        emit(_message_to_wire(ProgressMessage(progress=percent, request_id=request_id)))

    try:
        request = parse_request(payload)
        log_request_parameters(request)
        simulator = build_simulator(request, settings)
        result = simulator.run(progress=_progress)
        log_simulation_results(request, result)
        terminal = _message_to_wire(
            CompletionMessage(result=_result_to_wire(result), request_id=request_id)
        )
    except Exception as e:
        logger.exception(f"Simulation request failed: {e}")
        terminal = _message_to_wire(
            ErrorMessage(error=str(e) or e.__class__.__name__, request_id=request_id)
        )

    emit(terminal)
    return terminal


def _serve(inbox, outbox, settings_data: Dict[str, Any]) -> None:
    """Compute-unit process loop; a ``None`` item shuts it down."""
    settings = EngineSettings(**settings_data)
    configure_logging(settings.log_level)
    logger.info("Compute unit started")
    while True:
        item = inbox.get()
        if item is None:
            break
        request_id, payload = item
        handle_request(payload, outbox.put, settings=settings, request_id=request_id)
    logger.info("Compute unit stopped")


class SimulationJob:
    """Caller-side view of one submitted request."""

    def __init__(
        self,
        request_id: str,
        kind: Optional[str],
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self.request_id = request_id
        self.kind = kind
        self.on_progress = on_progress
        self.state = RequestState.IDLE
        self.progress = 0
        self.error: Optional[str] = None
        self.messages: List[dict] = []
        self.future: Future = Future()

    def __repr__(self) -> str:
        return f"SimulationJob({self.request_id!r}, kind={self.kind!r}, state={self.state.value}, progress={self.progress})"

    def _mark_running(self) -> None:
        self.state = RequestState.RUNNING
        # A running future cannot be cancelled, which matches the protocol.
        self.future.set_running_or_notify_cancel()

    def _receive(self, wire: dict) -> None:
        if self.future.done():
            logger.warning(f"Dropping message for finished request {self.request_id}: {wire.get('type')}")
            return
        message = parse_message(wire)
        self.messages.append(wire)

        if isinstance(message, ProgressMessage):
            self.progress = max(self.progress, message.progress)
            if self.on_progress is not None:
                try:
                    self.on_progress(message.progress)
                except Exception:
                    logger.exception(f"Progress callback failed for request {self.request_id}")
        elif isinstance(message, CompletionMessage):
            self.state = RequestState.COMPLETED
            self.progress = 100
            self.future.set_result(message.result)
        else:
            self.state = RequestState.FAILED
            self.error = message.error
            self.future.set_exception(SimulationFailed(message.error))

    def _abandon(self, exc: Exception) -> None:
        if not self.future.done():
            self.state = RequestState.FAILED
            self.error = str(exc)
            self.future.set_exception(exc)

    @property
    def is_terminal(self) -> bool:
        return self.state in (RequestState.COMPLETED, RequestState.FAILED)

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Wire-shaped result payload; raises SimulationFailed on an ERROR message."""
        return self.future.result(timeout)


class ComputeUnit:
    """
    A dedicated process serving simulation requests one at a time.

    Requests are submitted with :meth:`submit`; messages come back over a
    queue and are routed by request id to the matching :class:`SimulationJob`
    by a listener thread. Independent units share nothing.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        start_method: Optional[str] = None,
        poll_interval: float = 0.1,
    ):
        self.settings = settings or EngineSettings()
        self._ctx = multiprocessing.get_context(start_method)
        self._poll_interval = poll_interval
        self._jobs: Dict[str, SimulationJob] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._process = None
        self._listener: Optional[threading.Thread] = None
        self._inbox = None
        self._outbox = None
        self._closed = False

    def __enter__(self) -> "ComputeUnit":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def pending(self) -> List[SimulationJob]:
        with self._lock:
            return list(self._jobs.values())

    def start(self) -> "ComputeUnit":
        if self._closed:
            raise RuntimeError("Compute unit is closed.")
        if self._process is not None:
            return self
        self._inbox = self._ctx.Queue()
        self._outbox = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=_serve,
            args=(self._inbox, self._outbox, self.settings.model_dump()),
            name="compute-unit",
            daemon=True,
        )
        self._process.start()
        self._listener = threading.Thread(
            target=self._listen, name="compute-unit-listener", daemon=True
        )
        self._listener.start()
        logger.debug(f"Compute unit process {self._process.pid} started")
        return self

    def submit(
        self,
        request: Any,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> SimulationJob:
        """Sends a request (typed model or wire dict) and returns its job handle."""
        if self._closed:
            raise RuntimeError("Compute unit is closed.")
        self.start()

        payload = request.to_wire() if isinstance(request, WireModel) else request
        kind = payload.get("kind") if isinstance(payload, dict) else None
        job = SimulationJob(uuid.uuid4().hex, kind, on_progress=on_progress)
        with self._lock:
            # Set by the listener once the process has exited on its own.
            if self._closed or self._inbox is None:
                raise RuntimeError("Compute unit is closed.")
            self._jobs[job.request_id] = job
            job._mark_running()
            self._inbox.put((job.request_id, payload))
        logger.debug(f"Submitted {kind} request {job.request_id}")
        return job

    def _dispatch(self, wire: dict) -> None:
        request_id = wire.get("requestId")
        with self._lock:
            job = self._jobs.get(request_id)
        if job is None:
            logger.warning(f"Message for unknown request {request_id}: {wire.get('type')}")
            return
        job._receive(wire)
        if job.is_terminal:
            with self._lock:
                self._jobs.pop(request_id, None)

    def _drain(self) -> None:
        # A progress callback may terminate the unit mid-drain.
        while self._outbox is not None:
            try:
                wire = self._outbox.get_nowait()
            except queue.Empty:
                return
            self._dispatch(wire)

    def _fail_pending(self, exc: Exception) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        for job in jobs:
            job._abandon(exc)
        if jobs:
            logger.warning(f"{len(jobs)} pending request(s) failed: {exc}")

    def _listen(self) -> None:
        while not self._stopped.is_set():
            try:
                wire = self._outbox.get(timeout=self._poll_interval)
            except queue.Empty:
                if not self._process.is_alive():
                    self._on_process_exit()
                    return
                continue
            self._dispatch(wire)

    def _on_process_exit(self) -> None:
        with self._lock:
            self._closed = True
        self._drain()
        self._fail_pending(
            ComputeUnitTerminated(f"Compute unit exited with code {self._process.exitcode}")
        )
        self._release_queues()

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Finishes queued requests, then stops the process.

        Called from a progress callback it only requests the shutdown; the
        listener completes it once the process has exited.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._process is None or self._inbox is None:
                return
            self._inbox.put(None)
        if self._listener is threading.current_thread():
            return
        self._process.join(timeout)
        if self._process.is_alive():
            logger.warning("Compute unit did not stop in time; terminating")
            self._process.terminate()
            self._process.join()
        self._listener.join()
        self._release_queues()

    def terminate(self) -> None:
        """Kills the unit immediately; pending requests fail with ComputeUnitTerminated."""
        self._closed = True
        if self._process is None or self._inbox is None:
            return
        self._stopped.set()
        if self._listener is not None and self._listener is not threading.current_thread():
            self._listener.join()
        if self._process.is_alive():
            self._process.terminate()
            self._process.join()
        self._fail_pending(
            ComputeUnitTerminated("Compute unit terminated; pending requests discarded.")
        )
        self._release_queues()

    def _release_queues(self) -> None:
        with self._lock:
            queues = (self._inbox, self._outbox)
            self._inbox = None
            self._outbox = None
        for q in queues:
            if q is not None:
                q.close()
                q.cancel_join_thread()
