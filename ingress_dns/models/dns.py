"""Data models for DNS address records and record diffs."""

import ipaddress

from pydantic import BaseModel, Field, field_validator

ADDRESS_RECORD_TYPES = ("A", "AAAA")


def canonical_address(value: str) -> str:
    """Return the canonical text form of an IP address.

    Values that do not parse as an IP address are returned stripped but otherwise
    unchanged, so they still compare equal to themselves.
    """
    value = value.strip()
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return value


def record_type_for(address: str) -> str:
    """Return the address record type (A or AAAA) for an address."""
    try:
        return "AAAA" if ipaddress.ip_address(address.strip()).version == 6 else "A"
    except ValueError:
        return "A"


class DNSRecord(BaseModel):
    """An address record published at the DNS provider."""

    id: str
    name: str
    record_type: str = "A"
    content: str
    ttl: int = Field(default=1)
    proxied: bool = False

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        """Validate TTL is not negative."""
        if v < 0:
            raise ValueError(f"ttl must be >= 0, got {v}")
        return v

    @field_validator("record_type")
    @classmethod
    def validate_record_type(cls, v: str) -> str:
        """Validate the record is an address record."""
        v = v.upper()
        if v not in ADDRESS_RECORD_TYPES:
            raise ValueError(f"record_type must be one of {list(ADDRESS_RECORD_TYPES)}, got {v}")
        return v

    @property
    def address(self) -> str:
        """Canonical form of the record content."""
        return canonical_address(self.content)

    @classmethod
    def from_cloudflare_api(cls, data: dict) -> "DNSRecord":
        """Parse a record from a Cloudflare ``dns_records`` result entry."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            record_type=data.get("type", "A"),
            content=data.get("content", ""),
            ttl=data.get("ttl", 1),
            proxied=bool(data.get("proxied", False)),
        )


class RecordDiff(BaseModel):
    """Create/delete plan that converges published records to the desired addresses."""

    to_create: list[str] = Field(default_factory=list)
    to_delete: list[DNSRecord] = Field(default_factory=list)
    unchanged: list[DNSRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when no create or delete is needed."""
        return not self.to_create and not self.to_delete
