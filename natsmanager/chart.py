"""Release instances, rendered manifests and manifest parsing."""

from __future__ import annotations

import abc
import copy
import io
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import yaml

STATEFUL_SET_KIND = "StatefulSet"
_SEPARATOR = "---"


@dataclass
class ManifestResources:
    """Objects parsed from a rendered manifest, plus documents that could not be parsed."""

    items: list[dict[str, Any]] = field(default_factory=list)
    blobs: list[bytes] = field(default_factory=list)


@dataclass
class ReleaseInstance:
    """A named release of a chart with its dot-notated configuration overrides."""

    name: str
    namespace: str
    istio_enabled: bool = False
    configuration: dict[str, Any] | None = field(default_factory=dict)
    rendered_manifests: ManifestResources = field(default_factory=ManifestResources)

    def get_configuration(self) -> dict[str, Any]:
        """Return the configuration with dot-notated keys expanded into nested maps."""
        result: dict[str, Any] = {}
        for key, value in (self.configuration or {}).items():
            _deep_merge(result, _to_nested_map(key, value))
        return result

    def get_stateful_sets(self) -> list[dict[str, Any]]:
        """Return the StatefulSets among the rendered manifests."""
        return [item for item in self.rendered_manifests.items if is_stateful_set_object(item)]

    def set_rendered_manifests(self, rendered_manifests: ManifestResources) -> None:
        self.rendered_manifests = rendered_manifests


class Renderer(abc.ABC):
    """Renders a chart for a release instance."""

    @abc.abstractmethod
    def render_manifest(self, release_instance: ReleaseInstance) -> str:
        """Render the chart as a manifest string."""

    def render_manifest_as_unstructured(self, release_instance: ReleaseInstance) -> ManifestResources:
        """Render the chart and parse it into objects."""
        return parse_manifest_string_to_objects(self.render_manifest(release_instance))


def _to_nested_map(key: str, value: Any) -> dict[str, Any]:
    """Turn ``a.b.c`` and a value into ``{"a": {"b": {"c": value}}}``."""
    *parents, last = key.split(".")
    nested: dict[str, Any] = {last: value}
    for token in reversed(parents):
        nested = {token: nested}
    return nested


def _deep_merge(dst: dict[str, Any], src: dict[str, Any]) -> None:
    """Merge ``src`` into ``dst``; values from ``src`` win except where both are maps."""
    for key, value in src.items():
        current = dst.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            dst[key] = copy.deepcopy(value)


def is_stateful_set_object(obj: dict[str, Any]) -> bool:
    """Return True if the object's kind is StatefulSet."""
    return obj.get("kind") == STATEFUL_SET_KIND


def _split_documents(manifest: str) -> Iterator[str]:
    buffer: list[str] = []
    for line in io.StringIO(manifest):
        if line.startswith(_SEPARATOR):
            rest = line[len(_SEPARATOR):].strip()
            if rest and not rest.startswith("#"):
                raise ValueError(f"invalid YAML doc: invalid document separator: {rest}")
            if buffer:
                yield "".join(buffer)
                buffer = []
            continue
        buffer.append(line)
    if buffer:
        yield "".join(buffer)


def _load_object(raw: str) -> dict[str, Any] | None:
    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError:
        return None
    if not isinstance(loaded, dict):
        return None
    kind = loaded.get("kind")
    if not isinstance(kind, str) or not kind:
        return None
    return loaded


def parse_manifest_string_to_objects(manifest: str) -> ManifestResources:
    """Split a multi-document manifest into objects; unparseable documents become blobs."""
    resources = ManifestResources()
    for document in _split_documents(manifest):
        raw = document.strip()
        obj = _load_object(raw)
        if obj is None:
            resources.blobs.append((raw.removeprefix("---\n") + "\n").encode())
            continue
        resources.items.append(obj)
    return resources