from conftest import binding, rbac_list, role, user_subject

from RbacGrapher.builder import build_graph
from RbacGrapher.graph import CLUSTER_ROLE, RULES, SUBJECT, GraphNode, RuleLine
from RbacGrapher.loader import parse_rbac
from RbacGrapher.renderers import escape_html, node_attrs, render_dot, rules_label
from RbacGrapher.selection import QueryConfig
from RbacGrapher.whocan import WhoCan


def _dot(document, **kwargs):
    config = QueryConfig(**kwargs)
    return render_dot(build_graph(parse_rbac(document, config), config)).source


def test_escape_html():
    assert escape_html("a <b>\nc&d") == "a&nbsp;&lt;b&gt;<br/>c&amp;d"


def test_rules_label_marks_bold_lines():
    label = rules_label((RuleLine("get pods", bold=True), RuleLine("...")))

    assert label == '<<b>get&nbsp;pods</b><br align="left"/>...<br align="left"/>>'


def test_missing_subject_is_dotted_red():
    attrs = node_attrs(GraphNode(("subject",), SUBJECT, "ghost", exists=False, subject_kind="ServiceAccount"))

    assert attrs["style"] == "dotted"
    assert attrs["color"] == "red"
    assert attrs["penwidth"] == "2.0"
    assert attrs["shape"] == "box"


def test_locally_bound_cluster_role_is_dashed():
    attrs = node_attrs(GraphNode(("clusterrole",), CLUSTER_ROLE, "view", bound_locally=True))

    assert attrs["style"] == "filled,dashed"
    assert attrs["shape"] == "doubleoctagon"


def test_highlighted_rules_node_has_thick_border():
    attrs = node_attrs(GraphNode(("rules",), RULES, "r", highlight=True, rules=(RuleLine("get pods"),)))

    assert attrs["penwidth"] == "2.0"
    assert attrs["shape"] == "note"


def test_render_dot_contains_clusters_and_edges():
    source = _dot(rbac_list(
        role("reader", "ns", [{"verbs": ["get"], "resources": ["pods"]}]),
        binding("system-ish:b", "reader", [user_subject("bob")], namespace="ns"),
    ))

    assert source.startswith("digraph rbac {")
    assert "newrank=true" in source
    assert "cluster_LEGEND" in source
    assert "cluster_n_ns" in source
    assert "style=dashed" in source
    assert "dir=back" in source
    assert "rank=same" in source
    assert "get&nbsp;pods" in source


def test_render_dot_without_legend():
    source = _dot(rbac_list(role("reader", "ns")), show_legend=False)

    assert "cluster_LEGEND" not in source


def test_who_can_output_is_bold():
    source = _dot(rbac_list(
        role("reader", "ns", [{"verbs": ["get"], "resources": ["pods"]}]),
        binding("b", "reader", [user_subject("bob")], namespace="ns"),
    ), resource_kind="rule", who_can=WhoCan("get", "pods"), show_legend=False)

    assert "<b>get&nbsp;pods</b>" in source
    assert "<<b>reader</b>>" not in source
