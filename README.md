# natsmanager

Building blocks for running NATS on Kubernetes: turning rendered manifests
into objects, shaping release configuration, decorating objects with labels
and owner references, applying and deleting them through a cluster client,
checking whether the NATS StatefulSet is ready, and asking a NATS server
whether JetStream holds streams or consumers.

## Installation

```
pip install natsmanager
```

For running the test suite:

```
pip install "natsmanager[test]"
pytest
```

## Modules

- `natsmanager.config` – `get_config(environ=None)` reads `LOG_LEVEL`,
  `NATS_CHART_DIR`, `NATS_CR_NAME` and `NATS_CR_NAMESPACE` (from
  `os.environ` unless a mapping is given) into a frozen `Config`; a missing
  variable raises `ConfigError`.
- `natsmanager.fileutil` – `dir_exists(path)`; an empty path is never a
  directory.
- `natsmanager.events` – `EventRecorder` keeps recorded `Event`s in its
  `events` list; `normal()` and `warn()` record events of type `Normal` and
  `Warning`, formatting the message with `%`-style arguments.
- `natsmanager.chart` – `ReleaseInstance` (name, namespace, `istio_enabled`,
  dot-notated `configuration` expanded into nested maps by
  `get_configuration()`, `rendered_manifests`, `get_stateful_sets()`),
  `ManifestResources` (`items` and unparseable `blobs`), the abstract
  `Renderer`, `parse_manifest_string_to_objects()` and
  `is_stateful_set_object()`. A malformed document separator raises
  `ValueError`.
- `natsmanager.kube` – `KubeClient` for server-side apply, fetching
  StatefulSets, Secrets and CRDs, deleting objects (an object already gone
  is not an error), `destination_rule_crd_exists()`, and
  `delete_pvcs_with_label()` which deletes the PVCs matching a label
  selector whose names start with a given prefix. `parse_label_selector()`
  understands `=`, `==`, `!=`, `in (...)`, `notin (...)`, bare keys and
  `!key`, and returns a `LabelSelector`. Missing objects raise
  `NotFoundError`.
- `natsmanager.manager` – `NATSManager` ties a `Renderer` and a `KubeClient`
  together: `generate_nats_resources()`, `deploy_instance()`,
  `delete_instance()` and `is_nats_stateful_set_ready()` (which raises
  `LookupError` if the manifests hold no StatefulSet). `with_owner_reference()`
  (taking an `OwnerReference`) and `with_label()` build options that change
  objects before they are applied.
- `natsmanager.natsclient` – `NatsClient` (also a context manager) connects
  with a `NatsConfig(url, timeout=5.0)` over a `Connection`, which speaks the
  NATS client protocol on `nats://` or `tls://` URLs (port 4222 by default,
  optional user and password in the URL). `stream_exists()`, `get_streams()`
  and `consumers_exist(stream_name)` query the JetStream API; failures raise
  `NatsClientError`.
- `natsmanager.fixtures` – factories for sample objects, names and options
  (`new_nats_stateful_set_unstruct()`, `new_pvc()`, `with_spec_replicas()`,
  `get_free_port()` and more) for testing code built on this package.

## Example

```python
from natsmanager.chart import ReleaseInstance, parse_manifest_string_to_objects

instance = ReleaseInstance(
    "nats", "kyma-system", False,
    {"cluster.replicas": 3, "nats.logging.debug": True},
)
instance.get_configuration()
# {'cluster': {'replicas': 3}, 'nats': {'logging': {'debug': True}}}

manifests = parse_manifest_string_to_objects(
    "apiVersion: apps/v1\nkind: StatefulSet\nmetadata:\n  name: eventing-nats\n"
)
instance.set_rendered_manifests(manifests)
[obj["metadata"]["name"] for obj in instance.get_stateful_sets()]
# ['eventing-nats']
```

```python
from natsmanager.natsclient import NatsClient, NatsConfig

with NatsClient(NatsConfig("nats://localhost:4222")) as client:
    if client.stream_exists():
        print([s["config"]["name"] for s in client.get_streams()])
```

## What the package does not do

- It renders no charts: `Renderer` is an abstract interface, and a concrete
  renderer must supply `render_manifest()`.
- It does not talk to a Kubernetes API server itself: `KubeClient` works
  through the API and CRD backends passed to it, which must provide
  `get`, `list`, `delete`, `apply` and `get_crd`.
- It has no controller or reconcile loop and no command-line program.