"""Access to the Kubernetes API needed by the NATS manager."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

DESTINATION_RULE_CRD_NAME = "destinationrules.networking.istio.io"
DESTINATION_RULE_KIND = "DestinationRule"
DESTINATION_RULE_API_VERSION = "networking.istio.io/v1alpha3"
DEFAULT_FIELD_MANAGER = "nats-manager"

STATEFUL_SET_KIND = "StatefulSet"
SECRET_KIND = "Secret"
PVC_KIND = "PersistentVolumeClaim"

Object = dict[str, Any]


class NotFoundError(LookupError):
    """Raised when a requested object does not exist in the cluster."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f'{kind} "{name}" not found')
        self.kind = kind
        self.name = name


class _Operator(enum.Enum):
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


@dataclass(frozen=True)
class _Requirement:
    key: str
    operator: _Operator
    values: frozenset[str] = frozenset()

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        if self.operator is _Operator.EXISTS:
            return present
        if self.operator is _Operator.DOES_NOT_EXIST:
            return not present
        if self.operator in (_Operator.EQUALS, _Operator.IN):
            return present and labels[self.key] in self.values
        return not present or labels[self.key] not in self.values


@dataclass(frozen=True)
class LabelSelector:
    """A parsed label selector; the empty selector matches every object."""

    requirements: tuple[_Requirement, ...] = ()

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        """Return True if ``labels`` satisfy every requirement."""
        labels = labels or {}
        return all(requirement.matches(labels) for requirement in self.requirements)


_NAME = r"[A-Za-z0-9](?:[-A-Za-z0-9_.]*[A-Za-z0-9])?"
_KEY = rf"(?:{_NAME}/)?{_NAME}"
_VALUE = rf"(?:{_NAME})?"
_REQUIREMENT = re.compile(
    rf"""
    \s*(?:
        !\s*(?P<absent>{_KEY})
      | (?P<key>{_KEY})\s*(?:
            (?P<op>==|!=|=)\s*(?P<value>{_VALUE})
          | \s(?P<setop>in|notin)\s*\((?P<values>[^()]*)\)
        )?
    )\s*
    """,
    re.VERBOSE,
)
_VALUE_RE = re.compile(_VALUE)


def _split_requirements(selector: str) -> Iterator[str]:
    depth = 0
    start = 0
    for pos, char in enumerate(selector):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "," and depth == 0:
            yield selector[start:pos]
            start = pos + 1
    yield selector[start:]


def _parse_values(text: str, selector: str) -> frozenset[str]:
    values = [value.strip() for value in text.split(",")]
    if not text.strip() or not all(_VALUE_RE.fullmatch(value) for value in values):
        raise ValueError(f"invalid label selector {selector!r}: bad value set ({text})")
    return frozenset(values)


def _parse_requirement(text: str, selector: str) -> _Requirement:
    match = _REQUIREMENT.fullmatch(text)
    if match is None or not text.strip():
        raise ValueError(f"invalid label selector {selector!r}: cannot parse {text.strip()!r}")
    if match["absent"]:
        return _Requirement(match["absent"], _Operator.DOES_NOT_EXIST)
    key = match["key"]
    if match["op"]:
        operator = _Operator.NOT_EQUALS if match["op"] == "!=" else _Operator.EQUALS
        return _Requirement(key, operator, frozenset({match["value"]}))
    if match["setop"]:
        operator = _Operator.IN if match["setop"] == "in" else _Operator.NOT_IN
        return _Requirement(key, operator, _parse_values(match["values"], selector))
    return _Requirement(key, _Operator.EXISTS)


def parse_label_selector(selector: str) -> LabelSelector:
    """Parse a selector such as ``app=nats,tier in (a,b),!legacy``.

    Raises :class:`ValueError` if the selector is malformed.
    """
    if not selector.strip():
        return LabelSelector()
    return LabelSelector(
        tuple(_parse_requirement(part, selector) for part in _split_requirements(selector))
    )


class _ApiClient(Protocol):
    def get(self, kind: str, name: str, namespace: str) -> Object: ...

    def list(self, kind: str, namespace: str, selector: LabelSelector) -> list[Object]: ...

    def delete(self, obj: Object) -> None: ...

    def apply(self, obj: Object, *, field_manager: str, force: bool) -> None: ...


class _CrdClient(Protocol):
    def get_crd(self, name: str) -> Object: ...


class KubeClient:
    """Operations on cluster objects, built on an API backend and a CRD backend.

    The backends raise :class:`NotFoundError` for objects that do not exist.
    """

    def __init__(
        self,
        api: _ApiClient | None,
        crds: _CrdClient | None = None,
        field_manager: str = DEFAULT_FIELD_MANAGER,
    ) -> None:
        self._api = api
        self._crds = crds
        self.field_manager = field_manager

    @property
    def _objects(self) -> _ApiClient:
        if self._api is None:
            raise RuntimeError("no API client configured")
        return self._api

    def patch_apply(self, obj: Object) -> None:
        """Server-side apply ``obj``, forcing ownership of conflicting fields."""
        self._objects.apply(obj, field_manager=self.field_manager, force=True)

    def delete(self, obj: Object) -> None:
        """Delete ``obj``; an object that is already gone is not an error."""
        try:
            self._objects.delete(obj)
        except NotFoundError:
            pass

    def get_stateful_set(self, name: str, namespace: str) -> Object:
        return self._objects.get(STATEFUL_SET_KIND, name, namespace)

    def get_secret(self, name: str, namespace: str) -> Object:
        return self._objects.get(SECRET_KIND, name, namespace)

    def get_crd(self, name: str) -> Object:
        if self._crds is None:
            raise RuntimeError("no CRD client configured")
        return self._crds.get_crd(name)

    def destination_rule_crd_exists(self) -> bool:
        """Return True if the DestinationRule CRD is installed."""
        try:
            self.get_crd(DESTINATION_RULE_CRD_NAME)
        except NotFoundError:
            return False
        return True

    def delete_pvcs_with_label(self, label_selector: str, must_have_name_prefix: str, namespace: str) -> None:
        """Delete the PVCs matching ``label_selector`` whose name starts with the prefix."""
        selector = parse_label_selector(label_selector)
        for pvc in self._objects.list(PVC_KIND, namespace, selector):
            name = pvc.get("metadata", {}).get("name", "")
            if name.startswith(must_have_name_prefix):
                self._objects.delete(pvc)