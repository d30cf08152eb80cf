"""Thin client for the parts of the Nomad HTTP API the controller needs."""

import json
from collections.abc import Iterator

import requests

from ingress_dns.config import ControllerConfig
from ingress_dns.exceptions import EventStreamError, NomadError
from ingress_dns.logging_config import get_logger

logger = get_logger(__name__)


def event_topics(job_name: str) -> dict[str, list[str]]:
    """Event stream topics watched for a job.

    Job events are filtered to the job by name, with the wildcard kept so that
    deregistration events (which may carry only the job id) still arrive.
    """
    return {
        "Job": [job_name, "*"],
        "Allocation": ["*"],
        "Node": ["*"],
    }


class NomadClient:
    """Wraps the Nomad HTTP API."""

    def __init__(
        self,
        address: str,
        token: str,
        namespace: str = "default",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            address: Nomad HTTP address, e.g. http://nomad.service.consul:4646
            token: ACL token sent as X-Nomad-Token
            namespace: Nomad namespace of the watched job
            timeout: Timeout in seconds for regular requests
            session: Optional pre-built session (used by tests)
        """
        self.address = address.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"X-Nomad-Token": token, "Accept": "application/json"})
        self._stream_response: requests.Response | None = None

    @classmethod
    def from_config(cls, config: ControllerConfig) -> "NomadClient":
        """Create a client from controller configuration."""
        return cls(
            address=config.nomad_address,
            token=config.nomad_token,
            namespace=config.nomad_namespace,
            timeout=config.request_timeout_seconds,
        )

    def _get(self, path: str, params: dict | None = None):
        url = f"{self.address}{path}"
        query = {"namespace": self.namespace}
        if params:
            query.update(params)

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise NomadError(f"Request to Nomad failed: GET {path}", str(e))

        if response.status_code != 200:
            raise NomadError(
                f"Nomad returned HTTP {response.status_code} for GET {path}",
                response.text.strip() or None,
            )

        try:
            return response.json()
        except ValueError as e:
            raise NomadError(f"Nomad returned invalid JSON for GET {path}", str(e))

    def list_job_allocations(self, job_name: str) -> list[dict]:
        """List all allocations of a job.

        Args:
            job_name: Job id in Nomad

        Returns:
            Allocation stubs as returned by ``/v1/job/<job>/allocations``

        Raises:
            NomadError: If the allocations cannot be listed
        """
        allocations = self._get(f"/v1/job/{job_name}/allocations", {"all": "true"})
        if not isinstance(allocations, list):
            raise NomadError(
                f"Unexpected response listing allocations for job {job_name}",
                f"Expected a JSON list, got {type(allocations).__name__}",
            )
        logger.debug(f"Nomad returned {len(allocations)} allocations for job {job_name}")
        return allocations

    def get_node(self, node_id: str) -> dict:
        """Read a client node by id.

        Raises:
            NomadError: If the node cannot be read
        """
        node = self._get(f"/v1/node/{node_id}")
        if not isinstance(node, dict):
            raise NomadError(f"Unexpected response reading node {node_id}")
        return node

    def stream_events(self, topics: dict[str, list[str]], index: int = 0) -> Iterator[dict]:
        """Stream event frames from ``/v1/event/stream``.

        Each yielded item is one decoded frame, ``{"Index": ..., "Events": [...]}``.
        Heartbeat frames are skipped. The generator returns when the server
        closes the stream or :meth:`close_stream` is called.

        Args:
            topics: Mapping of topic name to filter keys
            index: Stream index to start from

        Raises:
            EventStreamError: If the stream cannot be opened, returns an error
                frame or sends undecodable data
        """
        params = [("namespace", self.namespace), ("index", str(index))]
        for topic, keys in topics.items():
            for key in keys:
                params.append(("topic", f"{topic}:{key}"))

        url = f"{self.address}/v1/event/stream"
        try:
            # No read timeout: the server only sends heartbeats while idle
            response = self.session.get(url, params=params, stream=True, timeout=(self.timeout, None))
        except requests.RequestException as e:
            raise EventStreamError("Failed to open Nomad event stream", str(e))

        if response.status_code != 200:
            body = response.text.strip()
            response.close()
            raise EventStreamError(
                f"Nomad event stream returned HTTP {response.status_code}", body or None
            )

        self._stream_response = response
        logger.info("Nomad event stream opened")
        try:
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    frame = json.loads(line)
                except ValueError as e:
                    raise EventStreamError("Nomad event stream sent invalid JSON", str(e))

                if not isinstance(frame, dict) or not frame:
                    continue
                if frame.get("Error"):
                    raise EventStreamError("Nomad event stream reported an error", str(frame["Error"]))
                yield frame
        except requests.RequestException as e:
            if self._stream_response is None:
                # Closed on purpose
                return
            raise EventStreamError("Nomad event stream was interrupted", str(e))
        finally:
            self._stream_response = None
            response.close()

    def close_stream(self) -> None:
        """Close the open event stream, unblocking a pending read."""
        response = self._stream_response
        self._stream_response = None
        if response is not None:
            response.close()
