from conftest import binding, group_subject, rbac_list, role, sa_subject, service_account, user_subject

from RbacGrapher.loader import parse_rbac
from RbacGrapher.model import NamespacedName
from RbacGrapher.selection import (
    KIND_ALIASES,
    QueryConfig,
    Selection,
    normalize_kind,
)
from RbacGrapher.whocan import WhoCan


def _permissions():
    return parse_rbac(rbac_list(
        service_account("alice", "ns"),
        role("reader", "ns", [{"verbs": ["get"], "resources": ["pods"]}]),
        role("admin", rules=[{"verbs": ["*"], "resources": ["*"]}]),
        binding("read-pods", "reader", [sa_subject("alice", "ns"), sa_subject("ghost", "ns")], namespace="ns"),
        binding("dangling", "missing", [user_subject("bob")], namespace="ns"),
        binding("local-admin", "admin", [group_subject("devs")], namespace="ns", role_kind="ClusterRole"),
        binding("admins", "admin", [user_subject("root")]),
        binding("other", "reader", [sa_subject("eve", "other")], namespace="other"),
    ))


def _selection(**kwargs):
    return Selection(QueryConfig(**kwargs), _permissions())


def _binding(selection, namespace, name):
    return selection.permissions.RoleBindings[namespace][name]


def test_normalize_kind_uses_alias_table():
    assert normalize_kind("SA") == "serviceaccount"
    assert normalize_kind("crb") == "clusterrolebinding"
    assert normalize_kind("Roles") == "role"
    assert normalize_kind("whatever") == "whatever"
    assert KIND_ALIASES["cr"] == "clusterrole"


def test_namespace_sentinel():
    everything = _selection()
    assert everything.all_namespaces()
    assert everything.namespace_selected("anything")

    nothing = _selection(namespaces=frozenset())
    assert not nothing.all_namespaces()
    assert not nothing.namespace_selected("ns")

    some = _selection(namespaces=frozenset({"ns"}))
    assert some.namespace_selected("ns")
    assert not some.namespace_selected("other")
    assert not some.namespace_selected("")


def test_resource_names():
    assert _selection().resource_name_selected("x")
    selection = _selection(resource_names=frozenset({"x"}))
    assert not selection.all_resource_names()
    assert selection.resource_name_selected("x")
    assert not selection.resource_name_selected("y")


def test_no_kind_renders_bindings_of_selected_namespaces():
    selection = _selection(namespaces=frozenset({"ns"}))

    assert selection.should_render_binding(_binding(selection, "ns", "read-pods"))
    assert not selection.should_render_binding(_binding(selection, "other", "other"))
    assert not selection.should_render_binding(_binding(selection, "", "admins"))


def test_rolebinding_kind():
    selection = _selection(resource_kind="rolebinding", resource_names=frozenset({"read-pods"}))

    assert selection.should_render_binding(_binding(selection, "ns", "read-pods"))
    assert not selection.should_render_binding(_binding(selection, "ns", "dangling"))


def test_clusterrolebinding_kind_requires_cluster_scope():
    selection = _selection(resource_kind="clusterrolebinding")

    assert selection.should_render_binding(_binding(selection, "", "admins"))
    assert not selection.should_render_binding(_binding(selection, "ns", "local-admin"))


def test_serviceaccount_kind_requires_existing_subject():
    selection = _selection(resource_kind="serviceaccount", resource_names=frozenset({"alice"}))
    assert selection.should_render_binding(_binding(selection, "ns", "read-pods"))

    ghost = _selection(resource_kind="serviceaccount", resource_names=frozenset({"ghost"}))
    assert not ghost.should_render_binding(_binding(ghost, "ns", "read-pods"))

    eve = _selection(resource_kind="serviceaccount", resource_names=frozenset({"eve"}))
    assert not eve.should_render_binding(_binding(eve, "other", "other"))


def test_user_and_group_kinds():
    users = _selection(resource_kind="user", resource_names=frozenset({"bob"}))
    assert users.should_render_binding(_binding(users, "ns", "dangling"))
    assert not users.should_render_binding(_binding(users, "", "admins"))

    groups = _selection(resource_kind="group")
    assert groups.should_render_binding(_binding(groups, "ns", "local-admin"))
    assert not groups.should_render_binding(_binding(groups, "ns", "read-pods"))


def test_role_kind_requires_existing_namespaced_role():
    selection = _selection(resource_kind="role")

    assert selection.should_render_binding(_binding(selection, "ns", "read-pods"))
    assert not selection.should_render_binding(_binding(selection, "ns", "dangling"))
    assert not selection.should_render_binding(_binding(selection, "ns", "local-admin"))


def test_clusterrole_kind_includes_rolebindings_to_clusterroles():
    selection = _selection(resource_kind="clusterrole", resource_names=frozenset({"admin"}))

    assert selection.should_render_binding(_binding(selection, "", "admins"))
    assert selection.should_render_binding(_binding(selection, "ns", "local-admin"))
    assert not selection.should_render_binding(_binding(selection, "ns", "read-pods"))


def test_rule_kind_uses_who_can():
    selection = _selection(resource_kind="rule", namespaces=frozenset({"ns"}), who_can=WhoCan("get", "pods"))

    assert selection.should_render_binding(_binding(selection, "ns", "read-pods"))
    assert selection.should_render_binding(_binding(selection, "", "admins"))
    assert not selection.should_render_binding(_binding(selection, "ns", "dangling"))
    # the reader role lives in "ns", so the binding in "other" points at a missing role
    assert not selection.should_render_binding(_binding(selection, "other", "other"))


def test_unknown_kind_selects_nothing():
    selection = _selection(resource_kind="pod")

    for bindings in selection.permissions.RoleBindings.values():
        for b in bindings.values():
            assert not selection.should_render_binding(b)


def test_is_focused():
    selection = _selection(resource_kind="role", resource_names=frozenset({"reader"}))

    assert selection.is_focused("role", "ns", "reader")
    assert not selection.is_focused("clusterrole", "", "reader")
    assert not selection.is_focused("role", "ns", "other")


def test_is_focused_for_rules():
    selection = _selection(resource_kind="rule", who_can=WhoCan("delete", "nodes"))

    assert selection.is_focused("rule", "", "admin")
    assert not selection.is_focused("rule", "ns", "reader")
    assert not selection.is_focused("rule", "ns", "missing")
    assert selection.rule_matches_selection(NamespacedName("", "admin"))


def test_subject_exists():
    selection = _selection()

    assert selection.subject_exists("ServiceAccount", "ns", "alice")
    assert not selection.subject_exists("ServiceAccount", "ns", "ghost")
    assert selection.subject_exists("User", "", "anyone")
    assert selection.subject_exists("Group", "", "anyone")


def test_no_kind_or():
    assert _selection().no_kind_or("role")
    assert _selection(resource_kind="").no_kind_or("clusterrole")

    roles = _selection(resource_kind="role")
    assert roles.no_kind_or("role")
    assert not roles.no_kind_or("clusterrole")
