"""Pytest configuration and shared fixtures."""

import itertools

import pytest
from hypothesis import Verbosity, settings

from ingress_dns.exceptions import CloudflareError, EventStreamError, NomadError
from ingress_dns.models.dns import DNSRecord

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


class FakeNomad:
    """In-memory stand-in for NomadClient."""

    def __init__(self):
        self.allocations: list[dict] = []
        self.nodes: dict[str, dict] = {}
        self.failing_nodes: set[str] = set()
        self.list_error: Exception | None = None
        self.node_calls: list[str] = []
        self.list_calls = 0
        # Each entry is one stream session: a list of frames, or an exception to raise
        self.stream_sessions: list = []
        self.stream_indexes: list[int] = []
        self.closed = 0

    def add_node(self, node_id: str, status: str = "ready", address: str = "", name: str = ""):
        self.nodes[node_id] = {
            "ID": node_id,
            "Name": name or node_id,
            "Status": status,
            "Attributes": {"unique.network.ip-address": address} if address else {},
        }

    def add_allocation(self, node_id: str, status: str = "running", alloc_id: str | None = None):
        self.allocations.append(
            {
                "ID": alloc_id or f"alloc-{len(self.allocations)}",
                "NodeID": node_id,
                "ClientStatus": status,
            }
        )

    def list_job_allocations(self, job_name: str) -> list[dict]:
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return list(self.allocations)

    def get_node(self, node_id: str) -> dict:
        self.node_calls.append(node_id)
        if node_id in self.failing_nodes or node_id not in self.nodes:
            raise NomadError(f"Nomad returned HTTP 404 for GET /v1/node/{node_id}")
        return self.nodes[node_id]

    def stream_events(self, topics, index: int = 0):
        self.stream_indexes.append(index)
        if not self.stream_sessions:
            raise EventStreamError("no more sessions")
        session = self.stream_sessions.pop(0)
        if isinstance(session, Exception):
            raise session
        yield from session

    def close_stream(self) -> None:
        self.closed += 1


class FakeCloudflare:
    """In-memory stand-in for CloudflareClient."""

    def __init__(self):
        self.records: dict[str, DNSRecord] = {}
        self.fail_create: set[str] = set()
        self.fail_delete: set[str] = set()
        self.list_error: Exception | None = None
        self.calls: list[tuple] = []
        self._ids = itertools.count(1)

    def seed(self, name: str, content: str, record_id: str | None = None, record_type: str = "A"):
        record_id = record_id or f"rec-{next(self._ids)}"
        self.records[record_id] = DNSRecord(
            id=record_id, name=name, record_type=record_type, content=content
        )
        return self.records[record_id]

    def contents(self) -> set[str]:
        return {r.content for r in self.records.values()}

    def list_records(self, name: str, record_type: str = "A") -> list[DNSRecord]:
        self.calls.append(("list", name, record_type))
        if self.list_error:
            raise self.list_error
        return [r for r in self.records.values() if r.name == name and r.record_type == record_type]

    def create_record(self, name, content, record_type="A", ttl=1, proxied=False) -> DNSRecord:
        self.calls.append(("create", content, record_type))
        if content in self.fail_create:
            raise CloudflareError(f"Failed to create {record_type} record {name} -> {content}")
        return self.seed(name, content, record_type=record_type)

    def update_record(self, record_id, name, content, record_type="A", ttl=1, proxied=False):
        self.calls.append(("update", record_id, content))
        record = DNSRecord(id=record_id, name=name, record_type=record_type, content=content, ttl=ttl)
        self.records[record_id] = record
        return record

    def delete_record(self, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        if record_id in self.fail_delete:
            raise CloudflareError(f"Failed to delete record {record_id}")
        del self.records[record_id]


@pytest.fixture
def fake_nomad():
    """Nomad stand-in with no allocations."""
    return FakeNomad()


@pytest.fixture
def fake_cloudflare():
    """Cloudflare stand-in with no records."""
    return FakeCloudflare()


@pytest.fixture
def sample_env():
    """Minimal valid environment for ControllerConfig.from_env."""
    return {
        "NOMAD_ADDR": "http://nomad.service.consul:4646",
        "NOMAD_TOKEN": "nomad-secret",
        "CLOUDFLARE_API_TOKEN": "cf-secret",
        "CLOUDFLARE_ZONE_ID": "zone123",
        "TRAEFIK_JOB_NAME": "traefik",
        "DNS_RECORD_NAME": "ingress.example.com",
    }
