"""Query configuration and the predicates deciding what gets drawn and highlighted."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

from RbacGrapher.model import SERVICE_ACCOUNT, USER, GROUP, Binding, NamespacedName, Permissions
from RbacGrapher.whocan import WhoCan

KIND_SERVICE_ACCOUNT = "serviceaccount"
KIND_ROLE_BINDING = "rolebinding"
KIND_CLUSTER_ROLE_BINDING = "clusterrolebinding"
KIND_ROLE = "role"
KIND_CLUSTER_ROLE = "clusterrole"
KIND_USER = "user"
KIND_GROUP = "group"
KIND_RULE = "rule"

RESOURCE_KINDS = frozenset({
    KIND_SERVICE_ACCOUNT,
    KIND_ROLE_BINDING,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_ROLE,
    KIND_CLUSTER_ROLE,
    KIND_USER,
    KIND_GROUP,
    KIND_RULE,
})

KIND_ALIASES = MappingProxyType({
    "sa": KIND_SERVICE_ACCOUNT,
    "serviceaccounts": KIND_SERVICE_ACCOUNT,
    "rb": KIND_ROLE_BINDING,
    "rolebindings": KIND_ROLE_BINDING,
    "crb": KIND_CLUSTER_ROLE_BINDING,
    "clusterrolebindings": KIND_CLUSTER_ROLE_BINDING,
    "r": KIND_ROLE,
    "roles": KIND_ROLE,
    "cr": KIND_CLUSTER_ROLE,
    "clusterroles": KIND_CLUSTER_ROLE,
    "users": KIND_USER,
    "groups": KIND_GROUP,
})

ALL_NAMESPACES = frozenset({""})
DEFAULT_IGNORED_PREFIXES = frozenset({"system:"})


def normalize_kind(kind):
    """Lower-case ``kind`` and resolve short names and plurals."""

    kind = kind.lower()
    return KIND_ALIASES.get(kind, kind)


@dataclass(frozen=True, slots=True)
class QueryConfig:
    """What the user asked to see.

    ``namespaces == {""}`` selects every namespace; an empty
    ``resource_names`` selects every name.
    """

    namespaces: frozenset = ALL_NAMESPACES
    ignored_prefixes: frozenset = DEFAULT_IGNORED_PREFIXES
    resource_kind: Optional[str] = None
    resource_names: frozenset = frozenset()
    show_rules: bool = True
    show_legend: bool = True
    who_can: WhoCan = field(default_factory=WhoCan)

    def should_ignore(self, name: str) -> bool:
        return any(name.startswith(prefix) for prefix in self.ignored_prefixes)


class Selection:
    """Render/highlight predicates over a QueryConfig and a loaded snapshot.

    Every method is total: an unknown ``resource_kind`` selects nothing
    instead of raising.
    """

    def __init__(self, config: QueryConfig, permissions: Permissions):
        self.config = config
        self.permissions = permissions

    def all_namespaces(self) -> bool:
        return self.config.namespaces == ALL_NAMESPACES

    def all_resource_names(self) -> bool:
        return not self.config.resource_names

    def no_kind_or(self, kind: str) -> bool:
        """True when no kind was asked for, or exactly ``kind`` was."""

        return not self.config.resource_kind or self.config.resource_kind == kind

    def namespace_selected(self, namespace: str) -> bool:
        return self.all_namespaces() or namespace in self.config.namespaces

    def resource_name_selected(self, name: str) -> bool:
        return self.all_resource_names() or name in self.config.resource_names

    def role_exists(self, ref: NamespacedName) -> bool:
        return self.permissions.role_exists(ref)

    def subject_exists(self, kind: str, namespace: str, name: str) -> bool:
        # Users and groups live outside the cluster, assume they exist.
        if kind.lower() != KIND_SERVICE_ACCOUNT:
            return True
        return self.permissions.service_account_exists(namespace, name)

    def rule_matches_selection(self, ref: NamespacedName) -> bool:
        if self.config.resource_kind != KIND_RULE:
            return False
        role = self.permissions.get_role(ref)
        if role is None:
            return False
        return self.config.who_can.matches_any_rule_in(role)

    def should_render_binding(self, binding: Binding) -> bool:
        kind = self.config.resource_kind

        if not kind:
            return self.namespace_selected(binding.namespace)

        if kind == KIND_ROLE_BINDING:
            return self.namespace_selected(binding.namespace) and self.resource_name_selected(binding.name)

        if kind == KIND_CLUSTER_ROLE_BINDING:
            return binding.is_cluster_scoped and self.resource_name_selected(binding.name)

        if kind == KIND_SERVICE_ACCOUNT:
            return any(
                subject.kind == SERVICE_ACCOUNT
                and self.namespace_selected(subject.namespace)
                and self.resource_name_selected(subject.name)
                and self.subject_exists(SERVICE_ACCOUNT, subject.namespace, subject.name)
                for subject in binding.subjects
            )

        if kind in (KIND_USER, KIND_GROUP):
            subject_kind = USER if kind == KIND_USER else GROUP
            return any(
                subject.kind == subject_kind and self.resource_name_selected(subject.name)
                for subject in binding.subjects
            )

        if kind == KIND_ROLE:
            return (
                not binding.references_cluster_role
                and self.namespace_selected(binding.role.namespace)
                and self.resource_name_selected(binding.role.name)
                and self.role_exists(binding.role)
            )

        if kind == KIND_CLUSTER_ROLE:
            return (
                binding.references_cluster_role
                and self.resource_name_selected(binding.role.name)
                and self.role_exists(binding.role)
            )

        if kind == KIND_RULE:
            return self.rule_matches_selection(binding.role) and (
                binding.references_cluster_role or self.namespace_selected(binding.role.namespace)
            )

        return False

    def should_render_subject(self, subject) -> bool:
        """Whether a subject of an already-rendered binding is drawn."""

        if self.config.should_ignore(subject.name):
            return False
        if self.config.resource_kind != KIND_SERVICE_ACCOUNT:
            return True
        return (
            self.namespace_selected(subject.namespace)
            and self.resource_name_selected(subject.name)
            and self.subject_exists(subject.kind, subject.namespace, subject.name)
        )

    def is_focused(self, kind: str, namespace: str, name: str) -> bool:
        if kind == KIND_RULE:
            return self.rule_matches_selection(NamespacedName(namespace, name))
        return (
            self.config.resource_kind == kind
            and self.namespace_selected(namespace)
            and self.resource_name_selected(name)
        )
