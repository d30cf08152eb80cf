"""Property-based tests for node model validation and eligibility."""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from ingress_dns.models.dns import canonical_address
from ingress_dns.models.node import ClusterNode
from ingress_dns.resolver import desired_addresses

statuses = st.sampled_from(["ready", "down", "initializing", "disconnected", ""])
node_ids = st.uuids().map(str)


@st.composite
def public_address(draw):
    """Generate an address, sometimes empty or padded with whitespace."""
    address = draw(st.one_of(st.just(""), st.ip_addresses().map(str)))
    padding = draw(st.sampled_from(["", " ", "\t"]))
    return f"{padding}{address}{padding}"


@st.composite
def cluster_node(draw):
    return ClusterNode(
        id=draw(node_ids),
        name=draw(st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", max_size=12)),
        public_address=draw(public_address()),
        status=draw(statuses),
    )


@given(node=cluster_node())
def test_eligibility_requires_ready_status_and_address(node):
    """A node is eligible exactly when it is ready and has a public address."""
    assert node.eligible == (node.status == "ready" and node.public_address != "")


@given(node=cluster_node())
def test_address_whitespace_is_trimmed(node):
    assert node.public_address == node.public_address.strip()


@given(nodes=st.lists(cluster_node(), max_size=10))
def test_desired_addresses_only_from_eligible_nodes(nodes):
    """The desired set is the canonical addresses of the eligible nodes, nothing more."""
    desired = desired_addresses(nodes)
    eligible = [n for n in nodes if n.eligible]

    assert desired == {canonical_address(n.public_address) for n in eligible}
    assert len(desired) <= len(eligible)


@given(node_id=node_ids, address=st.ip_addresses(v=4).map(str))
def test_from_nomad_api(node_id, address):
    data = {
        "ID": node_id,
        "Name": "edge",
        "Status": "ready",
        "Attributes": {"unique.network.ip-address": address},
    }

    node = ClusterNode.from_nomad_api(data)

    assert node.id == node_id
    assert node.public_address == address
    assert node.eligible


def test_example_eligibility():
    nodes = [
        ClusterNode(id="n1", status="ready", public_address="1.1.1.1"),
        ClusterNode(id="n2", status="down", public_address="2.2.2.2"),
        ClusterNode(id="n3", status="ready", public_address=""),
    ]

    assert [n.id for n in nodes if n.eligible] == ["n1"]
    assert desired_addresses(nodes) == frozenset({"1.1.1.1"})


def test_missing_attributes():
    node = ClusterNode.from_nomad_api({"ID": "n1", "Status": "ready", "Attributes": None})

    assert node.public_address == ""
    assert not node.eligible


def test_non_string_address_attribute_ignored():
    node = ClusterNode.from_nomad_api(
        {"ID": "n1", "Status": "ready", "Attributes": {"unique.network.ip-address": 17}}
    )

    assert node.public_address == ""


def test_empty_id_rejected():
    with pytest.raises(ValidationError):
        ClusterNode(id="")


def test_none_values_normalized():
    node = ClusterNode(id="n1", public_address=None, status=None)

    assert node.public_address == ""
    assert node.status == ""
    assert str(node) == "n1 (no address) - unknown"
