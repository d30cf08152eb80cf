"""Reconciliation control loop.

The controller reconciles once at startup, then waits for the first of:

- a cluster event from the event watcher (reconciles after a fixed debounce),
- the periodic fallback timer,
- cancellation (returns normally),
- a fatal event watcher failure (raises ``EventStreamError``).

All reconciliation happens on the thread that calls :meth:`Controller.run`, one
pass at a time.
"""

import enum
import queue
import threading
import time

from ingress_dns.config import ControllerConfig
from ingress_dns.converger import DNSConverger
from ingress_dns.events import EventWatcher
from ingress_dns.exceptions import EventStreamError, IngressDNSError
from ingress_dns.logging_config import get_logger
from ingress_dns.metrics import ControllerMetrics
from ingress_dns.models.event import ClusterEvent
from ingress_dns.models.sync import ReconciliationOutcome
from ingress_dns.resolver import NodeSetResolver, desired_addresses

logger = get_logger(__name__)


class ControllerState(str, enum.Enum):
    IDLE = "idle"
    RECONCILING = "reconciling"
    STOPPED = "stopped"


class Trigger(str, enum.Enum):
    STARTUP = "startup"
    EVENT = "event"
    PERIODIC = "periodic"
    MANUAL = "manual"


class Controller:
    """Keeps the DNS records of the Traefik hostname converged with the cluster."""

    def __init__(
        self,
        resolver: NodeSetResolver,
        converger: DNSConverger,
        metrics: ControllerMetrics,
        watcher_factory=None,
        sync_interval: float = 300.0,
        debounce: float = 2.0,
        queue_size: int = 64,
        poll_interval: float = 0.5,
    ):
        """Initialize the controller.

        Args:
            resolver: Source of the eligible node set
            converger: Applies record changes at the DNS provider
            metrics: Metrics and readiness handle
            watcher_factory: Callable ``(events_queue, stop_event) -> EventWatcher``;
                when None the controller runs on the periodic timer only
            sync_interval: Seconds between periodic reconciliations
            debounce: Seconds to wait after an event before reconciling
            queue_size: Capacity of the event queue
            poll_interval: Longest single wait before re-checking for
                cancellation and watcher failure
        """
        self.resolver = resolver
        self.converger = converger
        self.metrics = metrics
        self.watcher_factory = watcher_factory
        self.sync_interval = sync_interval
        self.debounce = debounce
        self.poll_interval = poll_interval

        self.events: queue.Queue = queue.Queue(maxsize=queue_size)
        self.stop_event = threading.Event()
        self.state = ControllerState.IDLE
        self.watcher: EventWatcher | None = None
        self.last_outcome: ReconciliationOutcome | None = None

    @classmethod
    def from_config(
        cls, config: ControllerConfig, nomad, cloudflare, metrics: ControllerMetrics
    ) -> "Controller":
        """Wire a controller from configuration and API clients."""
        resolver = NodeSetResolver(nomad, config.traefik_job_name, config.node_address_attribute)
        converger = DNSConverger(
            cloudflare,
            config.dns_record_name,
            ttl=config.dns_record_ttl,
            proxied=config.dns_record_proxied,
        )

        def watcher_factory(events: queue.Queue, stop_event: threading.Event) -> EventWatcher:
            return EventWatcher(
                nomad,
                config.traefik_job_name,
                events,
                stop_event,
                max_failures=config.watch_max_failures,
                retry_delay=config.watch_retry_delay_seconds,
            )

        return cls(
            resolver,
            converger,
            metrics,
            watcher_factory=watcher_factory,
            sync_interval=config.sync_interval_seconds,
            debounce=config.debounce_seconds,
            queue_size=config.event_queue_size,
        )

    def stop(self) -> None:
        """Request a graceful stop. Safe to call from any thread or signal handler."""
        self.stop_event.set()

    def reconcile(self, trigger: Trigger = Trigger.MANUAL, dry_run: bool = False) -> ReconciliationOutcome:
        """Run one reconciliation pass.

        Pass-level failures are captured in the returned outcome rather than
        raised.
        """
        self.state = ControllerState.RECONCILING
        finish = self.metrics.record_sync_start()
        started = time.monotonic()
        outcome = ReconciliationOutcome(trigger=Trigger(trigger).value)
        logger.info(f"Syncing DNS records ({outcome.trigger})...")

        try:
            nodes = self.resolver.resolve()
            addresses = desired_addresses(nodes)
            outcome.eligible_nodes = len(nodes)
            outcome.addresses_desired = len(addresses)
            logger.info(f"Found {len(nodes)} eligible Traefik nodes")

            result = self.converger.converge(addresses, dry_run=dry_run)
            outcome.records_observed = result.records_observed
            outcome.created = result.created
            outcome.deleted = result.deleted
            outcome.failed = result.failed
        except IngressDNSError as e:
            outcome.error = e.message
            logger.error(f"Sync failed ({outcome.trigger}): {e.message}")
        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"
            logger.error(f"Unexpected error during sync ({outcome.trigger}): {e}", exc_info=True)
        finally:
            outcome.duration_seconds = round(time.monotonic() - started, 3)
            finish(outcome.error, outcome.addresses_desired, outcome.eligible_nodes)
            self.metrics.record_changes_applied(outcome.created, outcome.deleted, outcome.failed)
            self.last_outcome = outcome
            if self.state is ControllerState.RECONCILING:
                self.state = ControllerState.IDLE

        if outcome.succeeded:
            logger.info(
                f"DNS sync completed: {outcome.addresses_desired} addresses, "
                f"{outcome.created} created, {outcome.deleted} deleted, {outcome.failed} failed"
            )
            if not dry_run:
                self.metrics.mark_ready()
        return outcome

    def run(self) -> None:
        """Run until stopped.

        Raises:
            EventStreamError: If the event watcher fails for good
        """
        logger.info("Controller starting")
        self.state = ControllerState.IDLE
        self.reconcile(Trigger.STARTUP)

        if self.watcher_factory is not None:
            self.watcher = self.watcher_factory(self.events, self.stop_event)
            self.watcher.start()

        next_periodic = time.monotonic() + self.sync_interval
        try:
            while True:
                trigger = self._wait_for_trigger(next_periodic)
                if trigger is None:
                    logger.info("Controller stopping")
                    return

                if isinstance(trigger, ClusterEvent):
                    logger.info(f"Received event {trigger.kind}")
                    # Fixed window: later events join this pass without extending it
                    self.stop_event.wait(self.debounce)
                    if self.stop_event.is_set():
                        logger.info("Controller stopping")
                        return
                    coalesced = self._drain_events()
                    if coalesced:
                        logger.debug(f"Coalesced {coalesced} further event(s) into this sync")
                    self.reconcile(Trigger.EVENT)
                else:
                    logger.info("Performing periodic sync...")
                    self.reconcile(Trigger.PERIODIC)
                    next_periodic = time.monotonic() + self.sync_interval
        finally:
            self.state = ControllerState.STOPPED
            self.stop_event.set()
            if self.watcher is not None:
                self.watcher.stop()

    def _wait_for_trigger(self, next_periodic: float):
        """Block until something should happen.

        Returns:
            A ClusterEvent, ``Trigger.PERIODIC``, or None when stopping

        Raises:
            EventStreamError: If the event watcher has failed
        """
        while True:
            if self.stop_event.is_set():
                return None
            if self.watcher is not None and self.watcher.failed.is_set():
                error = self.watcher.error or EventStreamError("Event watcher failed")
                logger.error(f"Event watcher failed, shutting down: {error.message}")
                raise error

            remaining = next_periodic - time.monotonic()
            if remaining <= 0:
                return Trigger.PERIODIC

            try:
                return self.events.get(timeout=min(remaining, self.poll_interval))
            except queue.Empty:
                continue

    def _drain_events(self) -> int:
        drained = 0
        while True:
            try:
                self.events.get_nowait()
            except queue.Empty:
                return drained
            drained += 1
