"""DNS converger: applies record diffs at Cloudflare."""

from collections.abc import Iterable

from ingress_dns.cloudflare import CloudflareClient
from ingress_dns.differ import compute_diff
from ingress_dns.exceptions import CloudflareError
from ingress_dns.logging_config import get_logger
from ingress_dns.models.dns import ADDRESS_RECORD_TYPES, DNSRecord, RecordDiff, record_type_for
from ingress_dns.models.sync import ConvergeResult

logger = get_logger(__name__)


class DNSConverger:
    """Brings the address records of one hostname in line with a desired address set."""

    def __init__(
        self,
        cloudflare: CloudflareClient,
        record_name: str,
        ttl: int = 1,
        proxied: bool = False,
    ):
        self.cloudflare = cloudflare
        self.record_name = record_name
        self.ttl = ttl
        self.proxied = proxied

    def current_records(self) -> list[DNSRecord]:
        """All A and AAAA records published for the hostname.

        Raises:
            CloudflareError: If the records cannot be listed
        """
        records: list[DNSRecord] = []
        for record_type in ADDRESS_RECORD_TYPES:
            records.extend(self.cloudflare.list_records(self.record_name, record_type))
        return records

    def plan(self, desired: Iterable[str]) -> tuple[list[DNSRecord], RecordDiff]:
        """Read the published records and compute the diff against ``desired``."""
        records = self.current_records()
        return records, compute_diff(desired, records)

    def converge(self, desired: Iterable[str], dry_run: bool = False) -> ConvergeResult:
        """Apply the changes needed for ``desired``.

        Deletes run before creates. A failed create or delete, whatever the
        error, is logged and counted but does not stop the remaining operations.

        Args:
            desired: Addresses that should be published
            dry_run: Compute the plan without changing anything

        Returns:
            ConvergeResult with operation counts

        Raises:
            CloudflareError: If the current records cannot be listed
        """
        desired = list(desired)
        records, diff = self.plan(desired)

        logger.info(
            f"Syncing records for {self.record_name}: {len(records)} published, "
            f"{len(set(desired))} desired, {len(diff.to_delete)} to delete, "
            f"{len(diff.to_create)} to create"
        )

        result = ConvergeResult(records_observed=len(records), dry_run=dry_run)
        if dry_run:
            return result

        for record in diff.to_delete:
            try:
                self.cloudflare.delete_record(record.id)
                result.deleted += 1
            except CloudflareError as e:
                result.failed += 1
                logger.error(f"Error deleting record {record.id} ({record.content}): {e.message}")
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Unexpected error deleting record {record.id} ({record.content}): {e}",
                    exc_info=True,
                )

        for address in diff.to_create:
            try:
                self.cloudflare.create_record(
                    self.record_name,
                    address,
                    record_type=record_type_for(address),
                    ttl=self.ttl,
                    proxied=self.proxied,
                )
                result.created += 1
            except CloudflareError as e:
                result.failed += 1
                logger.error(f"Error creating record for {address}: {e.message}")
            except Exception as e:
                result.failed += 1
                logger.error(f"Unexpected error creating record for {address}: {e}", exc_info=True)

        return result
