"""Merge an abstract RbacGraph into Neo4j."""

import re

from py2neo import Node, Relationship
from progress.bar import Bar

from RbacGrapher.graph import (
    CLUSTER_ROLE,
    CLUSTER_ROLE_BINDING,
    EDGE_BINDING_TO_ROLE,
    EDGE_ROLE_TO_RULES,
    EDGE_SUBJECT_TO_BINDING,
    ROLE,
    ROLE_BINDING,
    RULES,
    SUBJECT,
)

NODE_LABELS = {
    ROLE_BINDING: "RoleBinding",
    CLUSTER_ROLE_BINDING: "ClusterRoleBinding",
    ROLE: "Role",
    CLUSTER_ROLE: "ClusterRole",
    RULES: "Rules",
}

RELATIONSHIP_TYPES = {
    EDGE_SUBJECT_TO_BINDING: "BOUND_BY",
    EDGE_BINDING_TO_ROLE: "GRANTS_ROLE",
    EDGE_ROLE_TO_RULES: "HAS_RULES",
}

BATCH_SIZE = 100


def node_label(node):
    if node.category == SUBJECT:
        label = re.sub(r"[^a-zA-Z0-9_]", "_", node.subject_kind or "Subject")
    else:
        label = NODE_LABELS[node.category]
    return label if node.exists else f"Absent{label}"


def node_uid(node):
    return "_".join(part if part else "-" for part in node.key)


def to_neo4j_node(node):
    neo4j_node = Node(
        node_label(node),
        name=node.label,
        namespace=node.namespace,
        uid=node_uid(node),
        exists=node.exists,
        highlight=node.highlight,
        rules=[line.text for line in node.rules],
    )
    neo4j_node.__primarylabel__ = node_label(node)
    neo4j_node.__primarykey__ = "uid"
    return neo4j_node


def export_to_neo4j(graph, neo4j_graph):
    """Merge every node and edge of ``graph``, committing in batches."""

    print("#### Neo4j export ####")

    neo4j_nodes = {}
    with Bar("Nodes", max=len(graph.nodes)) as bar:
        tx = neo4j_graph.begin()
        for batch, node in enumerate(graph.nodes.values(), start=1):
            bar.next()
            neo4j_node = to_neo4j_node(node)
            tx.merge(neo4j_node)
            neo4j_nodes[node.key] = neo4j_node
            if batch % BATCH_SIZE == 0:
                neo4j_graph.commit(tx)
                tx = neo4j_graph.begin()
        neo4j_graph.commit(tx)

    with Bar("Relationships", max=len(graph.edges)) as bar:
        tx = neo4j_graph.begin()
        for batch, edge in enumerate(graph.edges.values(), start=1):
            bar.next()
            tx.merge(Relationship(
                neo4j_nodes[edge.source],
                RELATIONSHIP_TYPES[edge.category],
                neo4j_nodes[edge.target],
            ))
            if batch % BATCH_SIZE == 0:
                neo4j_graph.commit(tx)
                tx = neo4j_graph.begin()
        neo4j_graph.commit(tx)

    return neo4j_nodes
