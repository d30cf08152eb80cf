"""Data models for cluster state, DNS records and reconciliation results."""

from ingress_dns.models.dns import DNSRecord, RecordDiff, canonical_address, record_type_for
from ingress_dns.models.event import WATCHED_EVENT_TYPES, ClusterEvent
from ingress_dns.models.node import ClusterNode
from ingress_dns.models.sync import ConvergeResult, ReconciliationOutcome

__all__ = [
    "ClusterNode",
    "ClusterEvent",
    "WATCHED_EVENT_TYPES",
    "DNSRecord",
    "RecordDiff",
    "canonical_address",
    "record_type_for",
    "ConvergeResult",
    "ReconciliationOutcome",
]
