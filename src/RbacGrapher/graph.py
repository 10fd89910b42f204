"""Abstract RBAC graph handed to the renderers.

Nodes and edges are stored by identity: asking for a node whose key is
already known returns the stored node, asking for an edge between an
ordered pair that is already connected returns the stored edge.
"""

from dataclasses import dataclass, field
from typing import Optional

SUBJECT = "subject"
ROLE_BINDING = "rolebinding"
CLUSTER_ROLE_BINDING = "clusterrolebinding"
ROLE = "role"
CLUSTER_ROLE = "clusterrole"
RULES = "rules"

EDGE_SUBJECT_TO_BINDING = "subject-binding"
EDGE_BINDING_TO_ROLE = "binding-role"
EDGE_ROLE_TO_RULES = "role-rules"


@dataclass(frozen=True, slots=True)
class RuleLine:
    text: str
    bold: bool = False


@dataclass(slots=True)
class GraphNode:
    key: tuple
    category: str
    label: str
    namespace: str = ""
    cluster: str = ""
    exists: bool = True
    highlight: bool = False
    subject_kind: Optional[str] = None
    bound_locally: bool = False
    rules: tuple = ()


@dataclass(frozen=True, slots=True)
class GraphEdge:
    source: tuple
    target: tuple
    category: str


@dataclass(slots=True)
class RbacGraph:
    nodes: dict = field(default_factory=dict)
    edges: dict = field(default_factory=dict)
    clusters: list = field(default_factory=list)
    legend: Optional["RbacGraph"] = None

    def node(self, key, category, label, **attrs) -> GraphNode:
        """Return the node stored under ``key``, creating it on first use.

        Attributes of an existing node are left untouched.
        """

        existing = self.nodes.get(key)
        if existing is not None:
            return existing

        node = GraphNode(key=key, category=category, label=label, **attrs)
        self.nodes[key] = node
        if node.cluster and node.cluster not in self.clusters:
            self.clusters.append(node.cluster)
        return node

    def edge(self, source: GraphNode, target: GraphNode, category) -> GraphEdge:
        pair = (source.key, target.key)
        existing = self.edges.get(pair)
        if existing is not None:
            return existing

        edge = GraphEdge(source.key, target.key, category)
        self.edges[pair] = edge
        return edge

    def nodes_in(self, cluster):
        return [node for node in self.nodes.values() if node.cluster == cluster]

    def incoming(self, node: GraphNode):
        return [edge for edge in self.edges.values() if edge.target == node.key]

    def outgoing(self, node: GraphNode):
        return [edge for edge in self.edges.values() if edge.source == node.key]


def subject_key(kind, namespace, name):
    return (SUBJECT, kind, namespace, name)


def binding_key(namespace, name):
    category = CLUSTER_ROLE_BINDING if namespace == "" else ROLE_BINDING
    return (category, namespace, name)


def role_key(role_namespace, role_name, binding_namespace=""):
    # A ClusterRole gets one node per namespace it is bound in.
    if role_namespace == "":
        return (CLUSTER_ROLE, binding_namespace, role_name)
    return (ROLE, role_namespace, role_name)


def rules_key(role_node_key):
    return (RULES,) + role_node_key
