"""Decode a Kubernetes ``List`` of RBAC resources into the permission model.

The decode is strict: anything structurally wrong with a recognized resource
raises :class:`RbacDecodeError` and stops the load. Resources of other kinds
are skipped with a notice on stderr.
"""

import json
import sys

import yaml

from RbacGrapher.model import (
    SERVICE_ACCOUNT,
    Binding,
    KindNamespacedName,
    NamespacedName,
    Permissions,
    Role,
    Rule,
)
from RbacGrapher.selection import QueryConfig

TAG_INVALID_DOCUMENT = "invalid-document"
TAG_WRONG_KIND = "wrong-kind"
TAG_MISSING_FIELD = "missing-field"
TAG_WRONG_TYPE = "wrong-type"

ROLE_KINDS = ("Role", "ClusterRole")
BINDING_KINDS = ("RoleBinding", "ClusterRoleBinding")
RULE_FIELDS = ("verbs", "resources", "resourceNames", "nonResourceURLs", "apiGroups")
RECOGNIZED_KINDS = (SERVICE_ACCOUNT,) + ROLE_KINDS + BINDING_KINDS


class RbacDecodeError(ValueError):
    """The input is not a usable RBAC snapshot.

    ``tag`` classifies the failure, ``path`` points at the offending value
    (e.g. ``items[3].roleRef.name``).
    """

    def __init__(self, tag, message, path=""):
        self.tag = tag
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


def load_rbac(text, config=None, input_format="json"):
    """Decode ``text`` (JSON or YAML) and build :class:`Permissions`."""

    if input_format == "yaml":
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise RbacDecodeError(TAG_INVALID_DOCUMENT, f"Invalid YAML: {e}") from e
    else:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise RbacDecodeError(TAG_INVALID_DOCUMENT, f"Invalid JSON: {e}") from e

    return parse_rbac(document, config)


def parse_rbac(document, config=None):
    """Build :class:`Permissions` from an already decoded ``List`` document."""

    config = config or QueryConfig()

    if not isinstance(document, dict):
        raise RbacDecodeError(
            TAG_INVALID_DOCUMENT,
            f"Expected a JSON object, but found {type(document).__name__}",
        )

    if document.get("kind") != "List":
        raise RbacDecodeError(TAG_WRONG_KIND, f"Expected kind=List, but found {document.get('kind')}")

    if "items" not in document:
        raise RbacDecodeError(TAG_MISSING_FIELD, "List has no items", "items")
    items = _list_or_empty(document["items"], "items")

    permissions = Permissions()

    for index, item in enumerate(items):
        path = f"items[{index}]"
        item = _require_dict(item, path)
        kind = _require_str(item, "kind", path)

        if kind not in RECOGNIZED_KINDS:
            print(f"[-] Ignoring resource kind {kind}", file=sys.stderr)
            continue

        nn = _namespaced_name(_require_dict(_require(item, "metadata", path), f"{path}.metadata"), f"{path}.metadata")

        if config.should_ignore(nn.name):
            continue

        if kind == SERVICE_ACCOUNT:
            # YAML timestamps decode to datetimes; only existence is ever checked.
            permissions.ServiceAccounts.setdefault(nn.namespace, {})[nn.name] = json.dumps(item, default=str)
        elif kind in BINDING_KINDS:
            permissions.RoleBindings.setdefault(nn.namespace, {})[nn.name] = _to_binding(item, nn, config, path)
        else:
            permissions.Roles.setdefault(nn.namespace, {})[nn.name] = _to_role(item, nn, path)

    return permissions


def _to_role(item, nn, path):
    raw_rules = _list_or_empty(item.get("rules"), f"{path}.rules")
    rules = tuple(_to_rule(raw_rule, f"{path}.rules[{i}]") for i, raw_rule in enumerate(raw_rules))
    return Role(nn.namespace, nn.name, rules)


def _to_rule(raw_rule, path):
    raw_rule = _require_dict(raw_rule, path)
    return Rule(**{name: _string_tuple(raw_rule.get(name), f"{path}.{name}") for name in RULE_FIELDS})


def _to_binding(item, nn, config, path):
    role_ref_path = f"{path}.roleRef"
    role_ref = _require_dict(_require(item, "roleRef", path), role_ref_path)
    role_name = _require_str(role_ref, "name", role_ref_path)

    # roleRef carries no namespace in real clusters: a Role always lives next
    # to its binding, a ClusterRole is cluster scoped.
    if role_ref.get("namespace") is not None:
        role_namespace = _optional_str(role_ref, "namespace", role_ref_path)
    elif role_ref.get("kind") == "Role":
        role_namespace = nn.namespace
    else:
        role_namespace = ""

    subjects = []
    for i, raw_subject in enumerate(_list_or_empty(item.get("subjects"), f"{path}.subjects")):
        subject = _to_subject(raw_subject, nn.namespace, f"{path}.subjects[{i}]")
        if not config.should_ignore(subject.name):
            subjects.append(subject)

    return Binding(
        namespace=nn.namespace,
        name=nn.name,
        role=NamespacedName(role_namespace, role_name),
        subjects=tuple(subjects),
    )


def _to_subject(raw_subject, binding_namespace, path):
    raw_subject = _require_dict(raw_subject, path)
    kind = _require_str(raw_subject, "kind", path)
    name = _require_str(raw_subject, "name", path)
    namespace = _optional_str(raw_subject, "namespace", path)
    if kind == SERVICE_ACCOUNT and not namespace:
        namespace = binding_namespace
    return KindNamespacedName(kind, namespace, name)


def _namespaced_name(obj, path):
    return NamespacedName(_optional_str(obj, "namespace", path), _require_str(obj, "name", path))


def _require(obj, key, path):
    if obj.get(key) is None:
        raise RbacDecodeError(TAG_MISSING_FIELD, f"Missing required field '{key}'", _join(path, key))
    return obj[key]


def _require_dict(value, path):
    if not isinstance(value, dict):
        raise RbacDecodeError(TAG_WRONG_TYPE, f"Expected an object, but found {type(value).__name__}", path)
    return value


def _require_str(obj, key, path):
    value = _require(obj, key, path)
    if not isinstance(value, str):
        raise RbacDecodeError(TAG_WRONG_TYPE, f"Expected a string, but found {type(value).__name__}", _join(path, key))
    return value


def _optional_str(obj, key, path):
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RbacDecodeError(TAG_WRONG_TYPE, f"Expected a string, but found {type(value).__name__}", _join(path, key))
    return value


def _list_or_empty(value, path):
    if value is None:
        return []
    if not isinstance(value, list):
        raise RbacDecodeError(TAG_WRONG_TYPE, f"Expected a list, but found {type(value).__name__}", path)
    return value


def _string_tuple(value, path):
    values = _list_or_empty(value, path)
    for i, v in enumerate(values):
        if not isinstance(v, str):
            raise RbacDecodeError(TAG_WRONG_TYPE, f"Expected a string, but found {type(v).__name__}", f"{path}[{i}]")
    return tuple(values)


def _join(path, key):
    return f"{path}.{key}" if path else key
