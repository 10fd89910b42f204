"""Typed permission model loaded from a Kubernetes RBAC snapshot."""

from dataclasses import dataclass, field
from typing import Iterator

SERVICE_ACCOUNT = "ServiceAccount"
USER = "User"
GROUP = "Group"


@dataclass(frozen=True, slots=True, order=True)
class NamespacedName:
    """Identity key. ``namespace == ""`` means cluster scope."""

    namespace: str
    name: str


@dataclass(frozen=True, slots=True, order=True)
class KindNamespacedName:
    kind: str
    namespace: str
    name: str


@dataclass(frozen=True, slots=True)
class Rule:
    """A single policy rule. Empty tuples mean "unspecified", not "all"."""

    verbs: tuple = ()
    resources: tuple = ()
    resourceNames: tuple = ()
    nonResourceURLs: tuple = ()
    apiGroups: tuple = ()


@dataclass(frozen=True, slots=True)
class Role:
    """Role or ClusterRole (cluster scope when ``namespace == ""``)."""

    namespace: str
    name: str
    rules: tuple = ()

    @property
    def ref(self):
        return NamespacedName(self.namespace, self.name)

    @property
    def is_cluster_role(self):
        return self.namespace == ""


@dataclass(frozen=True, slots=True)
class Binding:
    """RoleBinding or ClusterRoleBinding.

    ``role.namespace == ""`` means the binding points at a ClusterRole, even
    when the binding itself lives in a namespace.
    """

    namespace: str
    name: str
    role: NamespacedName
    subjects: tuple = ()

    @property
    def is_cluster_scoped(self):
        return self.namespace == ""

    @property
    def references_cluster_role(self):
        return self.role.namespace == ""


@dataclass(slots=True)
class Permissions:
    """The loaded snapshot, each mapping keyed by namespace first.

    ServiceAccounts keep their raw JSON text; only their existence matters.
    """

    ServiceAccounts: dict = field(default_factory=dict)
    Roles: dict = field(default_factory=dict)
    RoleBindings: dict = field(default_factory=dict)

    def get_role(self, ref: NamespacedName):
        return self.Roles.get(ref.namespace, {}).get(ref.name)

    def role_exists(self, ref: NamespacedName) -> bool:
        return ref.name in self.Roles.get(ref.namespace, {})

    def service_account_exists(self, namespace: str, name: str) -> bool:
        return name in self.ServiceAccounts.get(namespace, {})

    def iter_bindings(self) -> Iterator[Binding]:
        for namespace in sorted(self.RoleBindings):
            bindings = self.RoleBindings[namespace]
            for name in sorted(bindings):
                yield bindings[name]

    def iter_roles(self) -> Iterator[Role]:
        for namespace in sorted(self.Roles):
            roles = self.Roles[namespace]
            for name in sorted(roles):
                yield roles[name]

    def iter_service_accounts(self) -> Iterator[NamespacedName]:
        for namespace in sorted(self.ServiceAccounts):
            for name in sorted(self.ServiceAccounts[namespace]):
                yield NamespacedName(namespace, name)
