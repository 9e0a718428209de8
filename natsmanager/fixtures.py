"""Builders of sample Kubernetes objects, names and options used by tests."""

from __future__ import annotations

import random
import socket
import string
from collections.abc import Callable, Iterable, Mapping
from typing import Any, NamedTuple

Object = dict[str, Any]
Option = Callable[[Object], None]

CHARSET = string.ascii_lowercase + string.digits
RANDOM_NAME_LEN = 5

NAME_FORMAT = "name-%s"
NAMESPACE_FORMAT = "namespace-%s"
STATEFUL_SET_NAME_FORMAT = "%s-nats"
CONFIG_MAP_NAME_FORMAT = "%s-nats-config"
SECRET_NAME_FORMAT = "%s-nats-secret"
SERVICE_NAME_FORMAT = "%s-nats"
POD_DISRUPTION_BUDGET_NAME_FORMAT = "%s-nats"
DESTINATION_RULE_NAME_FORMAT = "%s-nats"

DESTINATION_RULE_CRD_NAME = "destinationrules.networking.istio.io"

_rand = random.Random()


class GroupVersionResource(NamedTuple):
    """Identifies a resource type by API group, version and plural name."""

    group: str
    version: str
    resource: str


def get_rand_string(length: int) -> str:
    """Return a random string of lower-case letters and digits."""
    return "".join(_rand.choice(CHARSET) for _ in range(length))


def get_rand_k8s_name(length: int) -> str:
    """Return a random name that is valid for Kubernetes objects."""
    return NAME_FORMAT % get_rand_string(length)


def new_namespace(name: str) -> Object:
    """Return a Namespace object with the given name."""
    return {"kind": "Namespace", "apiVersion": "v1", "metadata": {"name": name}}


def _section(obj: Object, key: str) -> dict[str, Any]:
    section = obj.setdefault(key, {})
    if not isinstance(section, dict):
        raise ValueError(f"failed to convert {key} to map")
    return section


def _setter(section: str, key: str, value: Any) -> Option:
    def apply(obj: Object) -> None:
        _section(obj, section)[key] = value

    return apply


def with_name(name: str) -> Option:
    """Option setting ``metadata.name``."""
    return _setter("metadata", "name", name)


def with_namespace(namespace: str) -> Option:
    """Option setting ``metadata.namespace``."""
    return _setter("metadata", "namespace", namespace)


def with_spec_replicas(replicas: int) -> Option:
    """Option setting ``spec.replicas``."""
    return _setter("spec", "replicas", replicas)


def with_stateful_set_status_current_replicas(replicas: int) -> Option:
    """Option setting ``status.currentReplicas``."""
    return _setter("status", "currentReplicas", replicas)


def with_stateful_set_status_updated_replicas(replicas: int) -> Option:
    """Option setting ``status.updatedReplicas``."""
    return _setter("status", "updatedReplicas", replicas)


def with_stateful_set_status_ready_replicas(replicas: int) -> Option:
    """Option setting ``status.readyReplicas``."""
    return _setter("status", "readyReplicas", replicas)


def _build(kind: str, api_version: str, options: Iterable[Option]) -> Object:
    obj: Object = {
        "kind": kind,
        "apiVersion": api_version,
        "metadata": {"name": "test1", "namespace": "test1"},
    }
    for option in options:
        option(obj)
    return obj


def new_nats_stateful_set_unstruct(*args: Option) -> Object:
    """Return a StatefulSet object named test1/test1 with the options applied."""
    return _build("StatefulSet", "apps/v1", args)


def new_secret_unstruct(*args: Option) -> Object:
    """Return a Secret object named test1/test1 with the options applied."""
    return _build("Secret", "v1", args)


def new_destination_rule_crd() -> Object:
    """Return the CustomResourceDefinition of the DestinationRule resource."""
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": DESTINATION_RULE_CRD_NAME},
        "spec": {
            "names": {},
            "scope": "Namespaced",
            "preserveUnknownFields": False,
        },
    }


def get_stateful_set_name(name: str) -> str:
    """Name of the StatefulSet created for the NATS resource ``name``."""
    return STATEFUL_SET_NAME_FORMAT % name


def get_config_map_name(name: str) -> str:
    """Name of the ConfigMap created for the NATS resource ``name``."""
    return CONFIG_MAP_NAME_FORMAT % name


def get_secret_name(name: str) -> str:
    """Name of the Secret created for the NATS resource ``name``."""
    return SECRET_NAME_FORMAT % name


def get_service_name(name: str) -> str:
    """Name of the Service created for the NATS resource ``name``."""
    return SERVICE_NAME_FORMAT % name


def get_pod_disruption_budget_name(name: str) -> str:
    """Name of the PodDisruptionBudget created for the NATS resource ``name``."""
    return POD_DISRUPTION_BUDGET_NAME_FORMAT % name


def get_destination_rule_name(name: str) -> str:
    """Name of the DestinationRule created for the NATS resource ``name``."""
    return DESTINATION_RULE_NAME_FORMAT % name


def find_container(containers: Iterable[Mapping[str, Any]], name: str) -> Mapping[str, Any] | None:
    """Return the first container called ``name``, or None."""
    return next((c for c in containers if c.get("name") == name), None)


def get_destination_rule_gvr() -> GroupVersionResource:
    """Return the group, version and resource of DestinationRules."""
    return GroupVersionResource("networking.istio.io", "v1alpha3", "destinationrules")


def new_pvc(name: str, namespace: str, labels: Mapping[str, str] | None) -> Object:
    """Return a 1Gi ReadWriteOnce PersistentVolumeClaim."""
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels) if labels is not None else None,
        },
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "resources": {"requests": {"storage": "1Gi"}},
        },
    }


def new_stateful_set(name: str, namespace: str, labels: Mapping[str, str] | None) -> Object:
    """Return an otherwise empty StatefulSet with the given metadata."""
    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels) if labels is not None else None,
        },
    }


def get_free_port() -> int:
    """Return a TCP port on localhost that was free when asked for."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]