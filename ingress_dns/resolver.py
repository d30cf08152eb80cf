"""Node set resolver: finds the eligible nodes running the watched job."""

from pydantic import ValidationError

from ingress_dns.exceptions import NomadError
from ingress_dns.logging_config import get_logger
from ingress_dns.models.dns import canonical_address
from ingress_dns.models.node import DEFAULT_ADDRESS_ATTRIBUTE, ClusterNode
from ingress_dns.nomad import NomadClient

logger = get_logger(__name__)

RUNNING_STATUS = "running"


class NodeSetResolver:
    """Derives the eligible node set of a job from live Nomad state.

    Every call reads allocations and nodes fresh from Nomad. Nothing is cached
    between calls.
    """

    def __init__(
        self,
        nomad: NomadClient,
        job_name: str,
        address_attribute: str = DEFAULT_ADDRESS_ATTRIBUTE,
    ):
        self.nomad = nomad
        self.job_name = job_name
        self.address_attribute = address_attribute

    def running_node_ids(self) -> list[str]:
        """Ids of the nodes with a running allocation of the job, deduplicated.

        Raises:
            NomadError: If the job allocations cannot be listed
        """
        allocations = self.nomad.list_job_allocations(self.job_name)

        node_ids: list[str] = []
        seen: set[str] = set()
        for alloc in allocations:
            if not isinstance(alloc, dict):
                continue
            if alloc.get("ClientStatus") != RUNNING_STATUS:
                continue
            node_id = alloc.get("NodeID")
            if not isinstance(node_id, str) or not node_id:
                logger.warning(f"Running allocation {alloc.get('ID', '?')} has no node id, skipping")
                continue
            if node_id in seen:
                continue
            seen.add(node_id)
            node_ids.append(node_id)

        logger.debug(
            f"Job {self.job_name}: {len(allocations)} allocations, "
            f"{len(node_ids)} distinct nodes with running allocations"
        )
        return node_ids

    def resolve(self) -> list[ClusterNode]:
        """Return the eligible nodes running the job.

        A node that cannot be read is logged and skipped.

        Raises:
            NomadError: If the job allocations cannot be listed
        """
        nodes: dict[str, ClusterNode] = {}

        for node_id in self.running_node_ids():
            try:
                data = self.nomad.get_node(node_id)
                node = ClusterNode.from_nomad_api(data, self.address_attribute)
            except NomadError as e:
                logger.warning(f"Failed to get node info for {node_id}: {e.message}")
                continue
            except ValidationError as e:
                logger.warning(f"Node {node_id} returned an unusable record: {e}")
                continue

            if not node.eligible:
                logger.debug(f"Node {node} is not eligible")
                continue

            nodes[node.id] = node
            logger.debug(f"Eligible node: {node}")

        return list(nodes.values())


def desired_addresses(nodes: list[ClusterNode]) -> frozenset[str]:
    """Address set to publish for the given nodes.

    Ineligible nodes are ignored and colliding addresses collapse into one.
    """
    return frozenset(canonical_address(n.public_address) for n in nodes if n.eligible)
