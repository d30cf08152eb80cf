"""Data model for Nomad client nodes."""

from pydantic import BaseModel, field_validator

READY_STATUS = "ready"
DEFAULT_ADDRESS_ATTRIBUTE = "unique.network.ip-address"


class ClusterNode(BaseModel):
    """A Nomad client node that runs (or ran) an allocation of the watched job."""

    id: str
    name: str = ""
    public_address: str = ""
    status: str = ""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate node id is not empty."""
        if not v:
            raise ValueError("id cannot be empty")
        return v

    @field_validator("public_address", "status", mode="before")
    @classmethod
    def normalize_optional_text(cls, v):
        """Treat missing values as empty strings and trim whitespace."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def eligible(self) -> bool:
        """Whether this node should be published in DNS."""
        return self.status == READY_STATUS and self.public_address != ""

    def __str__(self) -> str:
        """String representation of the node."""
        address = self.public_address or "no address"
        return f"{self.name or self.id} ({address}) - {self.status or 'unknown'}"

    @classmethod
    def from_nomad_api(
        cls, data: dict, address_attribute: str = DEFAULT_ADDRESS_ATTRIBUTE
    ) -> "ClusterNode":
        """Build a node from a Nomad ``/v1/node/<id>`` response.

        Args:
            data: Decoded node JSON
            address_attribute: Node attribute holding the public address

        Returns:
            ClusterNode instance
        """
        attributes = data.get("Attributes") or {}
        address = attributes.get(address_attribute, "") if isinstance(attributes, dict) else ""

        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            public_address=address if isinstance(address, str) else "",
            status=data.get("Status", ""),
        )
