"""Walk the permission model and produce the abstract RBAC graph."""

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
    RbacGraph,
    RuleLine,
    binding_key,
    role_key,
    rules_key,
    subject_key,
)
from RbacGrapher.model import SERVICE_ACCOUNT, NamespacedName
from RbacGrapher.selection import (
    KIND_CLUSTER_ROLE,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_ROLE,
    KIND_ROLE_BINDING,
    KIND_RULE,
    KIND_SERVICE_ACCOUNT,
    Selection,
)
from RbacGrapher.whocan import ELLIPSIS, rule_to_human_readable

LEGEND_NAMESPACE = "Namespace"


class GraphBuilder:
    """Three independent passes over the model, merged into one graph.

    1. bindings that pass the selection, with their role, rules and subjects
    2. service accounts no binding pulled in
    3. roles and cluster roles no binding pulled in
    """

    def __init__(self, permissions, config):
        self.permissions = permissions
        self.config = config
        self.selection = Selection(config, permissions)

    def build(self) -> RbacGraph:
        graph = RbacGraph()
        if self.config.show_legend:
            graph.legend = build_legend(self.config.show_rules)

        self._render_bindings(graph)
        self._render_service_accounts(graph)
        self._render_roles(graph)
        return graph

    def _render_bindings(self, graph):
        for binding in self.permissions.iter_bindings():
            if not self.selection.should_render_binding(binding):
                continue

            binding_node = self._binding_node(graph, binding.namespace, binding.name)
            role_node = self._role_and_rules_nodes(graph, binding.namespace, binding.namespace, binding.role)
            graph.edge(binding_node, role_node, EDGE_BINDING_TO_ROLE)

            for subject in binding.subjects:
                if not self.selection.should_render_subject(subject):
                    continue
                subject_node = self._subject_node(graph, subject.kind, subject.namespace, subject.name)
                graph.edge(subject_node, binding_node, EDGE_SUBJECT_TO_BINDING)

    def _render_service_accounts(self, graph):
        if not self.selection.no_kind_or(KIND_SERVICE_ACCOUNT):
            return

        for sa in self.permissions.iter_service_accounts():
            if self.selection.namespace_selected(sa.namespace) and self.selection.resource_name_selected(sa.name):
                self._subject_node(graph, SERVICE_ACCOUNT, sa.namespace, sa.name)

    def _render_roles(self, graph):
        for role in self.permissions.iter_roles():
            if role.is_cluster_role:
                render = self.selection.no_kind_or(KIND_CLUSTER_ROLE) and self.selection.all_namespaces()
            else:
                render = self.selection.no_kind_or(KIND_ROLE) and self.selection.namespace_selected(role.namespace)

            if render and self.selection.namespace_selected(role.namespace) and self.selection.resource_name_selected(role.name):
                self._role_and_rules_nodes(graph, role.namespace, "", role.ref)

    def _binding_node(self, graph, namespace, name):
        if namespace == "":
            category = CLUSTER_ROLE_BINDING
            highlight = self.selection.is_focused(KIND_CLUSTER_ROLE_BINDING, "", name)
        else:
            category = ROLE_BINDING
            highlight = self.selection.is_focused(KIND_ROLE_BINDING, namespace, name)
        return graph.node(
            binding_key(namespace, name),
            category,
            name,
            namespace=namespace,
            cluster=namespace,
            highlight=highlight,
        )

    def _subject_node(self, graph, kind, namespace, name):
        return graph.node(
            subject_key(kind, namespace, name),
            SUBJECT,
            name,
            namespace=namespace,
            cluster=namespace,
            exists=self.selection.subject_exists(kind, namespace, name),
            highlight=self.selection.is_focused(kind.lower(), namespace, name),
            subject_kind=kind,
        )

    def _role_and_rules_nodes(self, graph, cluster, binding_namespace, ref: NamespacedName):
        exists = self.selection.role_exists(ref)
        if ref.namespace == "":
            role_node = graph.node(
                role_key("", ref.name, binding_namespace),
                CLUSTER_ROLE,
                ref.name,
                namespace="",
                cluster=cluster,
                exists=exists,
                highlight=self.selection.is_focused(KIND_CLUSTER_ROLE, "", ref.name),
                bound_locally=binding_namespace != "",
            )
        else:
            role_node = graph.node(
                role_key(ref.namespace, ref.name),
                ROLE,
                ref.name,
                namespace=ref.namespace,
                cluster=cluster,
                exists=exists,
                highlight=self.selection.is_focused(KIND_ROLE, ref.namespace, ref.name),
            )

        if self.config.show_rules:
            focused = self.selection.is_focused(KIND_RULE, ref.namespace, ref.name)
            lines = self.rule_lines(ref, focused)
            if lines:
                rules_node = graph.node(
                    rules_key(role_node.key),
                    RULES,
                    ref.name,
                    namespace=ref.namespace,
                    cluster=cluster,
                    highlight=focused,
                    rules=tuple(lines),
                )
                graph.edge(role_node, rules_node, EDGE_ROLE_TO_RULES)

        return role_node

    def rule_lines(self, ref: NamespacedName, focused):
        """Human-readable rule lines of the role ``ref``, in rule order.

        With ``show_matched_only`` every run of non-matching rules is
        collapsed into a single ``...`` line.
        """

        role = self.permissions.get_role(ref)
        if role is None:
            return []

        who_can = self.config.who_can
        ellipsis = RuleLine(ELLIPSIS)
        lines = []
        for rule in role.rules:
            if self.config.resource_kind == KIND_RULE and focused and who_can.matches(rule):
                lines.append(RuleLine(rule_to_human_readable(rule), bold=True))
            elif who_can.show_matched_only:
                if not lines or lines[-1] != ellipsis:
                    lines.append(ellipsis)
            else:
                lines.append(RuleLine(rule_to_human_readable(rule)))
        return lines


def build_graph(permissions, config) -> RbacGraph:
    return GraphBuilder(permissions, config).build()


def build_legend(show_rules=True) -> RbacGraph:
    """One example of every node and edge kind, independent of the model."""

    legend = RbacGraph()
    ns = LEGEND_NAMESPACE

    subject = legend.node((SUBJECT, "Kind", ns, "Subject"), SUBJECT, "Subject", cluster=ns, subject_kind="Kind")
    missing_subject = legend.node(
        (SUBJECT, "Kind", ns, "Missing Subject"),
        SUBJECT,
        "Missing Subject",
        cluster=ns,
        exists=False,
        subject_kind="Kind",
    )

    role = legend.node(role_key("ns", "Role"), ROLE, "Role", namespace="ns", cluster=ns)
    cluster_role_bound_locally = legend.node(
        role_key("", "ClusterRole", "ns"),
        CLUSTER_ROLE,
        "ClusterRole",
        cluster=ns,
        bound_locally=True,
    )
    cluster_role = legend.node(role_key("", "ClusterRole"), CLUSTER_ROLE, "ClusterRole")

    role_binding = legend.node(binding_key("ns", "RoleBinding"), ROLE_BINDING, "RoleBinding", namespace="ns", cluster=ns)
    legend.edge(subject, role_binding, EDGE_SUBJECT_TO_BINDING)
    legend.edge(missing_subject, role_binding, EDGE_SUBJECT_TO_BINDING)
    legend.edge(role_binding, role, EDGE_BINDING_TO_ROLE)

    role_binding_to_cluster_role = legend.node(
        binding_key("ns", "RoleBinding-to-ClusterRole"),
        ROLE_BINDING,
        "RoleBinding",
        namespace="ns",
        cluster=ns,
    )
    legend.edge(subject, role_binding_to_cluster_role, EDGE_SUBJECT_TO_BINDING)
    legend.edge(role_binding_to_cluster_role, cluster_role_bound_locally, EDGE_BINDING_TO_ROLE)

    cluster_role_binding = legend.node(binding_key("", "ClusterRoleBinding"), CLUSTER_ROLE_BINDING, "ClusterRoleBinding")
    legend.edge(subject, cluster_role_binding, EDGE_SUBJECT_TO_BINDING)
    legend.edge(cluster_role_binding, cluster_role, EDGE_BINDING_TO_ROLE)

    if show_rules:
        for role_node, text in (
            (role, "Namespace-scoped\naccess rules"),
            (cluster_role_bound_locally, "Namespace-scoped\naccess rules"),
            (cluster_role, "Cluster-scoped\naccess rules"),
        ):
            rules_node = legend.node(
                rules_key(role_node.key),
                RULES,
                role_node.label,
                cluster=role_node.cluster,
                rules=(RuleLine(text),),
            )
            legend.edge(role_node, rules_node, EDGE_ROLE_TO_RULES)

    return legend
