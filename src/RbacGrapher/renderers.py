"""Turn an abstract RbacGraph into Graphviz DOT."""

import graphviz

from RbacGrapher.graph import (
    CLUSTER_ROLE,
    CLUSTER_ROLE_BINDING,
    EDGE_SUBJECT_TO_BINDING,
    ROLE,
    ROLE_BINDING,
    RULES,
    SUBJECT,
)

SUBJECT_FILL = "#2f6de1"
BINDING_FILL = "#ffcc00"
ROLE_FILL = "#ff9900"
DARK_FONT = "#030303"
LIGHT_FONT = "#f0f0f0"


def escape_html(text):
    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    text = text.replace(" ", "&nbsp;")
    text = text.replace("\n", "<br/>")
    return text


def format_label(label, highlight):
    if highlight:
        return f"<<b>{escape_html(label)}</b>>"
    return graphviz.nohtml(label)


def rules_label(lines):
    body = ""
    for line in lines:
        text = escape_html(line.text)
        if line.bold:
            text = f"<b>{text}</b>"
        body += text + '<br align="left"/>'
    return f"<{body}>"


def _pen(node):
    return "2.0" if node.highlight or not node.exists else "1.0"


def node_attrs(node):
    """Graphviz attributes for one node, by category."""

    if node.category == SUBJECT:
        label = f"{node.label}\n({node.subject_kind})"
        return {
            "label": format_label(label, node.highlight),
            "shape": "box",
            "style": "filled" if node.exists else "dotted",
            "color": "black" if node.exists else "red",
            "penwidth": _pen(node),
            "fillcolor": SUBJECT_FILL,
            "fontcolor": LIGHT_FONT if node.exists else DARK_FONT,
        }

    if node.category in (ROLE_BINDING, CLUSTER_ROLE_BINDING):
        return {
            "label": format_label(node.label, node.highlight),
            "shape": "octagon" if node.category == ROLE_BINDING else "doubleoctagon",
            "style": "filled",
            "penwidth": _pen(node),
            "fillcolor": BINDING_FILL,
            "fontcolor": DARK_FONT,
        }

    if node.category in (ROLE, CLUSTER_ROLE):
        if not node.exists:
            style = "dotted"
        elif node.bound_locally:
            style = "filled,dashed"
        else:
            style = "filled"
        return {
            "label": format_label(node.label, node.highlight),
            "shape": "octagon" if node.category == ROLE else "doubleoctagon",
            "style": style,
            "color": "black" if node.exists else "red",
            "penwidth": _pen(node),
            "fillcolor": ROLE_FILL,
            "fontcolor": DARK_FONT,
        }

    if node.category == RULES:
        return {
            "label": rules_label(node.rules),
            "shape": "note",
            "penwidth": "2.0" if node.highlight else "1.0",
        }

    raise ValueError(f"Unknown node category {node.category}")


def render_dot(graph, name="rbac"):
    """Return a ``graphviz.Digraph`` for ``graph`` (and its legend)."""

    dot = graphviz.Digraph(name)
    dot.attr(newrank="true")

    if graph.legend is not None:
        with dot.subgraph(name="cluster_LEGEND") as legend_dot:
            legend_dot.attr(label="LEGEND")
            _add_graph(legend_dot, graph.legend, "legend")

    ids = _add_graph(dot, graph, "n")

    role_ids = [ids[key] for key, node in graph.nodes.items() if node.category in (ROLE, CLUSTER_ROLE)]
    if role_ids:
        with dot.subgraph() as same_rank:
            same_rank.attr(rank="same")
            for node_id in role_ids:
                same_rank.node(node_id)

    return dot


def _add_graph(dot, graph, prefix):
    # Keys can hold ':' which DOT would read as a port, so nodes get short ids.
    ids = {key: f"{prefix}{i}" for i, key in enumerate(graph.nodes)}

    for node in graph.nodes_in(""):
        dot.node(ids[node.key], **node_attrs(node))

    for cluster in graph.clusters:
        with dot.subgraph(name=f"cluster_{prefix}_{cluster}") as sub:
            sub.attr(label=cluster, style="dashed")
            for node in graph.nodes_in(cluster):
                sub.node(ids[node.key], **node_attrs(node))

    for edge in graph.edges.values():
        if edge.category == EDGE_SUBJECT_TO_BINDING:
            dot.edge(ids[edge.source], ids[edge.target], dir="back")
        else:
            dot.edge(ids[edge.source], ids[edge.target])

    return ids
