"""Event source adapter: turns Nomad event-stream frames into cluster events."""

import queue
import threading
from typing import Any

from pydantic import ValidationError

from ingress_dns.exceptions import EventStreamError
from ingress_dns.logging_config import get_logger
from ingress_dns.models.event import WATCHED_EVENT_TYPES, ClusterEvent
from ingress_dns.nomad import NomadClient, event_topics

logger = get_logger(__name__)

# Payload paths searched, in order, for each identifier
NODE_ID_PATHS = (("NodeID",), ("Allocation", "NodeID"), ("Node", "ID"))
JOB_ID_PATHS = (("JobID",), ("Allocation", "JobID"), ("Job", "ID"))


def _lookup_str(payload: Any, path: tuple[str, ...]) -> str:
    """Walk ``path`` through nested dicts; anything that is not a string is absent."""
    value = payload
    for key in path:
        if not isinstance(value, dict):
            return ""
        value = value.get(key)
    return value if isinstance(value, str) else ""


def _first_str(payload: Any, paths: tuple[tuple[str, ...], ...]) -> str:
    for path in paths:
        value = _lookup_str(payload, path)
        if value:
            return value
    return ""


def normalize_event(raw: Any) -> ClusterEvent | None:
    """Convert one raw Nomad event into a ClusterEvent.

    Returns None for event types the controller does not react to and for
    events that cannot satisfy the ClusterEvent invariants. Never raises.
    """
    if not isinstance(raw, dict):
        return None

    kind = raw.get("Type")
    if kind not in WATCHED_EVENT_TYPES:
        return None

    index = raw.get("Index")
    if not isinstance(index, int) or isinstance(index, bool):
        index = 0

    payload = raw.get("Payload")
    details = {
        "topic": raw.get("Topic", ""),
        "key": raw.get("Key", ""),
        "namespace": raw.get("Namespace", ""),
        "index": index,
        "raw": raw,
    }

    try:
        return ClusterEvent(
            kind=kind,
            timestamp=index,
            node_id=_first_str(payload, NODE_ID_PATHS),
            job_id=_first_str(payload, JOB_ID_PATHS),
            details=details,
        )
    except ValidationError as e:
        logger.debug(f"Dropping malformed {kind} event: {e}")
        return None


class EventWatcher:
    """Feeds normalized cluster events into a bounded queue from a background thread.

    A stream failure is recorded in :attr:`error` and signalled through
    :attr:`failed`. With ``max_failures`` greater than one the stream is
    re-opened, resuming after the last index seen, before giving up.
    """

    def __init__(
        self,
        nomad: NomadClient,
        job_name: str,
        events: queue.Queue,
        stop_event: threading.Event,
        max_failures: int = 1,
        retry_delay: float = 5.0,
        put_timeout: float = 0.5,
    ):
        self.nomad = nomad
        self.job_name = job_name
        self.events = events
        self.stop_event = stop_event
        self.max_failures = max(1, int(max_failures))
        self.retry_delay = retry_delay
        self.put_timeout = put_timeout
        self.failed = threading.Event()
        self.error: EventStreamError | None = None
        self.last_index = 0
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start watching in a daemon thread."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.run, name="nomad-event-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop watching and wait for the thread to finish."""
        self.stop_event.set()
        self.nomad.close_stream()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def run(self) -> None:
        """Consume the stream until stopped or until the failure budget is spent."""
        logger.info(f"Starting Nomad event watcher for job {self.job_name}")
        failures = 0
        topics = event_topics(self.job_name)

        while not self.stop_event.is_set():
            try:
                start = self.last_index + 1 if self.last_index else 0
                frames = self.nomad.stream_events(topics, index=start)
                for frame in frames:
                    failures = 0
                    if not self._handle_frame(frame):
                        return
                if self.stop_event.is_set():
                    break
                raise EventStreamError("Nomad event stream closed by the server")
            except Exception as e:
                if self.stop_event.is_set():
                    break
                error = e if isinstance(e, EventStreamError) else EventStreamError(
                    "Nomad event stream failed", f"{type(e).__name__}: {e}"
                )
                failures += 1
                if failures >= self.max_failures:
                    logger.error(f"Event watcher giving up after {failures} failure(s): {error.message}")
                    self.error = error
                    self.failed.set()
                    return
                logger.warning(
                    f"Event stream failure {failures}/{self.max_failures}, "
                    f"reconnecting in {self.retry_delay}s: {error.message}"
                )
                self.stop_event.wait(self.retry_delay)

        logger.info("Nomad event watcher stopped")

    def _handle_frame(self, frame: dict) -> bool:
        """Forward the watched events of one frame. Returns False once stopped."""
        frame_index = frame.get("Index")
        if isinstance(frame_index, int) and not isinstance(frame_index, bool):
            self.last_index = max(self.last_index, frame_index)

        raw_events = frame.get("Events")
        if not isinstance(raw_events, list):
            return True

        for raw in raw_events:
            event = normalize_event(raw)
            if event is None:
                continue
            logger.debug(f"Forwarding {event.kind} event (node={event.node_id!r}, job={event.job_id!r})")
            if not self._put(event):
                return False
        return True

    def _put(self, event: ClusterEvent) -> bool:
        # Block while the queue is full, re-checking for cancellation
        while not self.stop_event.is_set():
            try:
                self.events.put(event, timeout=self.put_timeout)
                return True
            except queue.Full:
                continue
        return False
