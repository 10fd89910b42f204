import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def service_account(name, namespace):
    return {"kind": "ServiceAccount", "metadata": {"name": name, "namespace": namespace}}


def role(name, namespace=None, rules=None):
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {
        "kind": "Role" if namespace else "ClusterRole",
        "metadata": metadata,
        "rules": rules if rules is not None else [],
    }


def binding(name, role_name, subjects, namespace=None, role_kind=None):
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {
        "kind": "RoleBinding" if namespace else "ClusterRoleBinding",
        "metadata": metadata,
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": role_kind or ("Role" if namespace else "ClusterRole"),
            "name": role_name,
        },
        "subjects": subjects,
    }


def sa_subject(name, namespace):
    return {"kind": "ServiceAccount", "name": name, "namespace": namespace}


def user_subject(name):
    return {"kind": "User", "apiGroup": "rbac.authorization.k8s.io", "name": name}


def group_subject(name):
    return {"kind": "Group", "apiGroup": "rbac.authorization.k8s.io", "name": name}


def rbac_list(*items):
    return {"apiVersion": "v1", "kind": "List", "items": list(items)}


@pytest.fixture
def alice_document():
    return rbac_list(
        service_account("alice", "ns"),
        role("reader", "ns", [{"apiGroups": [""], "verbs": ["get"], "resources": ["pods"]}]),
        binding("binding1", "reader", [sa_subject("alice", "ns")], namespace="ns"),
    )
