import copy

import pytest

from natsmanager.fixtures import (
    new_destination_rule_crd,
    new_nats_stateful_set_unstruct,
    new_pvc,
    new_secret_unstruct,
    with_spec_replicas,
)
from natsmanager.kube import (
    DESTINATION_RULE_CRD_NAME,
    KubeClient,
    LabelSelector,
    NotFoundError,
    parse_label_selector,
)

FIELD_MANAGER = "nats-manager"


def _key(obj):
    metadata = obj.get("metadata", {})
    return obj["kind"], metadata.get("namespace", ""), metadata["name"]


class FakeApi:
    def __init__(self, *objects):
        self.objects = {_key(obj): copy.deepcopy(obj) for obj in objects}
        self.applied = []

    def get(self, kind, name, namespace):
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(kind, name) from None

    def list(self, kind, namespace, selector):
        return [
            copy.deepcopy(obj)
            for (obj_kind, obj_ns, _), obj in self.objects.items()
            if obj_kind == kind
            and (not namespace or obj_ns == namespace)
            and selector.matches(obj["metadata"].get("labels"))
        ]

    def delete(self, obj):
        key = _key(obj)
        if key not in self.objects:
            raise NotFoundError(obj["kind"], obj["metadata"]["name"])
        del self.objects[key]

    def apply(self, obj, *, field_manager, force):
        self.applied.append((field_manager, force))
        self.objects[_key(obj)] = copy.deepcopy(obj)


class FakeCrds:
    def __init__(self, *crds):
        self.crds = {crd["metadata"]["name"]: crd for crd in crds}

    def get_crd(self, name):
        try:
            return self.crds[name]
        except KeyError:
            raise NotFoundError("CustomResourceDefinition", name) from None


@pytest.mark.parametrize("exists", [False, True])
def test_get_stateful_set(exists):
    sts = new_nats_stateful_set_unstruct()
    api = FakeApi(sts) if exists else FakeApi()
    client = KubeClient(api, None, FIELD_MANAGER)
    if exists:
        got = client.get_stateful_set("test1", "test1")
        assert got["metadata"]["name"] == "test1"
        assert got["metadata"]["namespace"] == "test1"
    else:
        with pytest.raises(NotFoundError):
            client.get_stateful_set("test1", "test1")


@pytest.mark.parametrize("exists", [False, True])
def test_get_secret(exists):
    manifest = new_secret_unstruct()
    api = FakeApi(manifest) if exists else FakeApi()
    client = KubeClient(api, None, FIELD_MANAGER)
    if exists:
        got = client.get_secret("test1", "test1")
        assert (got["metadata"]["name"], got["metadata"]["namespace"]) == ("test1", "test1")
    else:
        with pytest.raises(NotFoundError):
            client.get_secret("test1", "test1")


@pytest.mark.parametrize("created", [True, False])
def test_delete(created):
    sts = new_nats_stateful_set_unstruct()
    api = FakeApi(sts) if created else FakeApi()
    client = KubeClient(api, None, FIELD_MANAGER)
    client.delete(sts)
    with pytest.raises(NotFoundError):
        client.get_stateful_set("test1", "test1")


def test_delete_propagates_other_errors():
    class FailingApi(FakeApi):
        def delete(self, obj):
            raise RuntimeError("boom")

    client = KubeClient(FailingApi())
    with pytest.raises(RuntimeError, match="boom"):
        client.delete(new_nats_stateful_set_unstruct())


def test_patch_apply_updates_existing():
    api = FakeApi(new_nats_stateful_set_unstruct(with_spec_replicas(1)))
    client = KubeClient(api, None, FIELD_MANAGER)
    client.patch_apply(new_nats_stateful_set_unstruct(with_spec_replicas(3)))
    got = client.get_stateful_set("test1", "test1")
    assert got["metadata"]["name"] == "test1"
    assert got["spec"]["replicas"] == 3
    assert api.applied == [(FIELD_MANAGER, True)]


@pytest.mark.parametrize(
    ("name", "found"),
    [(DESTINATION_RULE_CRD_NAME, True), ("non-existing", False)],
)
def test_get_crd(name, found):
    crd = new_destination_rule_crd()
    client = KubeClient(None, FakeCrds(crd), FIELD_MANAGER)
    if found:
        assert client.get_crd(name)["metadata"]["name"] == crd["metadata"]["name"]
    else:
        with pytest.raises(NotFoundError):
            client.get_crd(name)


@pytest.mark.parametrize("installed", [False, True])
def test_destination_rule_crd_exists(installed):
    crds = FakeCrds(new_destination_rule_crd()) if installed else FakeCrds()
    client = KubeClient(None, crds, FIELD_MANAGER)
    assert client.destination_rule_crd_exists() is installed


@pytest.mark.parametrize(
    ("prefix", "selector", "namespace", "pvc", "deleted"),
    [
        ("my", "app=myapp", "mynamespace", new_pvc("mypvc", "mynamespace", {"app": "myapp"}), True),
        ("", "app=myapp", "mynamespace", new_pvc("mypvc", "mynamespace", {"app": "notmyapp"}), False),
        ("", "app=myapp", "mynamespace", new_pvc("mypvc", "othernamespace", {"app": "myapp"}), False),
        ("app=notmy", "app=myapp", "mynamespace", new_pvc("mypvc", "mynamespace", {"app": "myapp"}), False),
    ],
)
def test_delete_pvcs_with_label(prefix, selector, namespace, pvc, deleted):
    api = FakeApi(pvc)
    client = KubeClient(api, None, FIELD_MANAGER)
    result = client.delete_pvcs_with_label(selector, prefix, namespace)
    remaining = (pvc["kind"], pvc["metadata"]["namespace"], pvc["metadata"]["name"]) in api.objects
    assert (result, remaining) == (None, not deleted)


def test_delete_pvcs_with_label_no_pvcs():
    api = FakeApi()
    result = KubeClient(api).delete_pvcs_with_label("", "", "")
    assert (result, api.objects) == (None, {})


def test_delete_pvcs_with_invalid_selector():
    with pytest.raises(ValueError):
        KubeClient(FakeApi()).delete_pvcs_with_label("app=(", "", "ns")


@pytest.mark.parametrize(
    ("selector", "labels", "expected"),
    [
        ("", {"a": "b"}, True),
        ("app=nats", {"app": "nats"}, True),
        ("app==nats", {"app": "nats"}, True),
        ("app=nats", {"app": "other"}, False),
        ("app!=nats", {}, True),
        ("app!=nats", {"app": "nats"}, False),
        ("tier in (a, b)", {"tier": "b"}, True),
        ("tier in (a,b)", {}, False),
        ("tier notin (a,b)", {"tier": "c"}, True),
        ("tier notin (a,b)", {"tier": "a"}, False),
        ("app", {"app": "x"}, True),
        ("!app", {"app": "x"}, False),
        ("app=nats,!legacy", {"app": "nats"}, True),
        ("app=nats,tier in (a,b)", {"app": "nats", "tier": "c"}, False),
        ("example.com/app=nats", {"example.com/app": "nats"}, True),
    ],
)
def test_label_selector_matches(selector, labels, expected):
    assert parse_label_selector(selector).matches(labels) is expected


def test_empty_selector_matches_missing_labels():
    assert LabelSelector().matches(None) is True


@pytest.mark.parametrize("selector", ["app=(", "a in ()", "=x", "app=nats,", "a b"])
def test_invalid_label_selector(selector):
    with pytest.raises(ValueError):
        parse_label_selector(selector)