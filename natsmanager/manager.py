"""Deployment and readiness of the NATS resources rendered from the chart."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from natsmanager.chart import ManifestResources, ReleaseInstance, Renderer
from natsmanager.kube import KubeClient

Object = dict[str, Any]
Option = Callable[[Object], None]


@dataclass(frozen=True)
class OwnerReference:
    """Identity of the object that owns the generated resources."""

    api_version: str
    kind: str
    name: str
    uid: str


def _mapping(parent: dict[str, Any], key: str) -> dict[str, Any]:
    if parent.get(key) is None:
        parent[key] = {}
    value = parent[key]
    if not isinstance(value, dict):
        raise ValueError(f"failed to convert {key} to map")
    return value


def with_owner_reference(owner: OwnerReference) -> Option:
    """Option making ``owner`` the controlling owner of an object."""

    def apply(obj: Object) -> None:
        _mapping(obj, "metadata")["ownerReferences"] = [
            {
                "apiVersion": owner.api_version,
                "kind": owner.kind,
                "name": owner.name,
                "uid": owner.uid,
                "blockOwnerDeletion": True,
                "controller": True,
            }
        ]

    return apply


def with_label(key: str, value: str) -> Option:
    """Option setting the label ``key`` to ``value``."""

    def apply(obj: Object) -> None:
        _mapping(_mapping(obj, "metadata"), "labels")[key] = value

    return apply


class NATSManager:
    """Renders, deploys, deletes and checks a NATS release."""

    def __init__(
        self,
        kube_client: KubeClient,
        chart_renderer: Renderer,
        logger: logging.Logger | None = None,
    ) -> None:
        self.kube_client = kube_client
        self.chart_renderer = chart_renderer
        self.logger = logger or logging.getLogger(__name__)

    def generate_nats_resources(self, instance: ReleaseInstance, *args: Option) -> ManifestResources:
        """Render the chart for ``instance`` and apply every option to each object."""
        manifests = self.chart_renderer.render_manifest_as_unstructured(instance)
        for obj in manifests.items:
            for option in args:
                option(obj)
        return manifests

    def deploy_instance(self, instance: ReleaseInstance) -> None:
        """Apply every rendered object to the cluster, stopping at the first failure."""
        for obj in instance.rendered_manifests.items:
            self.kube_client.patch_apply(obj)

    def delete_instance(self, instance: ReleaseInstance) -> None:
        """Delete every rendered object from the cluster, stopping at the first failure."""
        for obj in instance.rendered_manifests.items:
            self.kube_client.delete(obj)

    def is_nats_stateful_set_ready(self, instance: ReleaseInstance) -> bool:
        """Return True if every rendered StatefulSet has all its replicas current, updated and ready.

        Raises :class:`LookupError` if the manifests hold no StatefulSet.
        """
        stateful_sets = instance.get_stateful_sets()
        if not stateful_sets:
            raise LookupError("NATS StatefulSet not found in manifests")

        for sts in stateful_sets:
            metadata = sts.get("metadata", {})
            current = self.kube_client.get_stateful_set(metadata.get("name", ""), metadata.get("namespace", ""))
            replicas = (current.get("spec") or {}).get("replicas", 1)
            status = current.get("status") or {}
            counts = (status.get(field, 0) for field in ("currentReplicas", "updatedReplicas", "readyReplicas"))
            if any(count != replicas for count in counts):
                return False
        return True