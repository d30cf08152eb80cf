"""Desired-state differ: computes the minimal record changes for an address set."""

from collections.abc import Iterable

from ingress_dns.models.dns import DNSRecord, RecordDiff, canonical_address


def compute_diff(desired: Iterable[str], records: Iterable[DNSRecord]) -> RecordDiff:
    """Compute the create/delete plan that turns ``records`` into ``desired``.

    Records whose address is desired are left alone; every other record is
    deleted and every desired address without a record is created. An empty
    desired set therefore deletes all records.

    Records sharing an address are not deduplicated: they are kept or deleted
    together.

    Args:
        desired: Addresses that should be published
        records: Records currently published for the hostname

    Returns:
        RecordDiff with ``to_create`` sorted for stable output
    """
    wanted = {canonical_address(a) for a in desired if a and a.strip()}
    records = list(records)

    if not wanted:
        return RecordDiff(to_create=[], to_delete=records, unchanged=[])

    to_delete: list[DNSRecord] = []
    unchanged: list[DNSRecord] = []
    published: set[str] = set()

    for record in records:
        address = record.address
        if address in wanted:
            unchanged.append(record)
            published.add(address)
        else:
            to_delete.append(record)

    to_create = sorted(wanted - published)
    return RecordDiff(to_create=to_create, to_delete=to_delete, unchanged=unchanged)


def apply_diff(records: Iterable[DNSRecord], diff: RecordDiff) -> set[str]:
    """Address set that results from applying ``diff`` to ``records``."""
    deleted = {r.id for r in diff.to_delete}
    remaining = {r.address for r in records if r.id not in deleted}
    return remaining | {canonical_address(a) for a in diff.to_create}
