"""Thin client for the Cloudflare DNS records API."""

import requests
from pydantic import ValidationError

from ingress_dns.config import ControllerConfig
from ingress_dns.exceptions import CloudflareError
from ingress_dns.logging_config import get_logger
from ingress_dns.models.dns import DNSRecord

logger = get_logger(__name__)

API_BASE = "https://api.cloudflare.com/client/v4"
PAGE_SIZE = 100


class CloudflareClient:
    """Manages address records in one Cloudflare zone."""

    def __init__(
        self,
        api_token: str,
        zone_id: str,
        timeout: float = 10.0,
        base_url: str = API_BASE,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            api_token: Cloudflare API token with DNS edit permission on the zone
            zone_id: Zone identifier
            timeout: Request timeout in seconds
            base_url: API base URL
            session: Optional pre-built session (used by tests)
        """
        self.zone_id = zone_id
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {api_token}", "Content-Type": "application/json"}
        )

    @classmethod
    def from_config(cls, config: ControllerConfig) -> "CloudflareClient":
        """Create a client from controller configuration."""
        return cls(
            api_token=config.cloudflare_api_token,
            zone_id=config.cloudflare_zone_id,
            timeout=config.request_timeout_seconds,
        )

    @property
    def records_url(self) -> str:
        return f"{self.base_url}/zones/{self.zone_id}/dns_records"

    def _request(self, method: str, url: str, action: str, **kwargs) -> dict:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise CloudflareError(f"Failed to {action}", str(e))

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            raise CloudflareError(
                f"Failed to {action}: HTTP {response.status_code}", response.text.strip() or None
            )

        errors = data.get("errors") or []
        if response.status_code >= 400 or not data.get("success", False):
            details = "; ".join(
                f"{e.get('code', '?')}: {e.get('message', '')}" if isinstance(e, dict) else str(e)
                for e in errors
            )
            raise CloudflareError(
                f"Failed to {action}: HTTP {response.status_code}", details or None, errors=errors
            )

        return data

    def _parse_record(self, item, action: str) -> DNSRecord:
        try:
            return DNSRecord.from_cloudflare_api(item)
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise CloudflareError(f"Failed to {action}: unexpected record in response", str(e))

    def list_records(self, name: str, record_type: str = "A") -> list[DNSRecord]:
        """List records of one type with an exact name.

        Raises:
            CloudflareError: If any page cannot be fetched
        """
        records: list[DNSRecord] = []
        page = 1
        while True:
            data = self._request(
                "GET",
                self.records_url,
                f"list {record_type} records for {name}",
                params={"name": name, "type": record_type, "page": page, "per_page": PAGE_SIZE},
            )
            for item in data.get("result") or []:
                records.append(self._parse_record(item, f"list {record_type} records for {name}"))

            total_pages = (data.get("result_info") or {}).get("total_pages") or 1
            if page >= total_pages:
                break
            page += 1

        return records

    def _record_payload(self, name: str, content: str, record_type: str, ttl: int, proxied: bool) -> dict:
        payload = {"type": record_type, "name": name, "content": content, "proxied": proxied}
        # ttl 0 means "provider default"
        if ttl:
            payload["ttl"] = ttl
        return payload

    def create_record(
        self, name: str, content: str, record_type: str = "A", ttl: int = 1, proxied: bool = False
    ) -> DNSRecord:
        """Create an address record.

        Raises:
            CloudflareError: If the record cannot be created
        """
        data = self._request(
            "POST",
            self.records_url,
            f"create {record_type} record {name} -> {content}",
            json=self._record_payload(name, content, record_type, ttl, proxied),
        )
        record = self._parse_record(
            data.get("result"), f"create {record_type} record {name} -> {content}"
        )
        logger.info(f"Created {record_type} record {name} -> {content} (id {record.id})")
        return record

    def update_record(
        self,
        record_id: str,
        name: str,
        content: str,
        record_type: str = "A",
        ttl: int = 1,
        proxied: bool = False,
    ) -> DNSRecord:
        """Replace an existing record.

        Raises:
            CloudflareError: If the record cannot be updated
        """
        data = self._request(
            "PUT",
            f"{self.records_url}/{record_id}",
            f"update record {record_id}",
            json=self._record_payload(name, content, record_type, ttl, proxied),
        )
        record = self._parse_record(data.get("result"), f"update record {record_id}")
        logger.info(f"Updated {record_type} record {name} -> {content} (id {record_id})")
        return record

    def delete_record(self, record_id: str) -> None:
        """Delete a record by id.

        Raises:
            CloudflareError: If the record cannot be deleted
        """
        self._request("DELETE", f"{self.records_url}/{record_id}", f"delete record {record_id}")
        logger.info(f"Deleted record {record_id}")
