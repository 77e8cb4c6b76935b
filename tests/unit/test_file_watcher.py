import json
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from threading import Event

from route_vs.models import ConfigMap, Namespace, Route, Service
from route_vs_agent.main import main
from route_vs_agent.manifests import load_manifests
from route_vs_agent.watchers.file import FileResourceWatcher

NAMESPACE = """
apiVersion: v1
kind: Namespace
metadata:
  name: ns1
"""

GLOBAL_SPEC = """
apiVersion: v1
kind: ConfigMap
metadata:
  name: global-spec
  namespace: kube-system
data:
  extendedSpec: |
    extendedRouteGroupConfigs:
      - namespace: ns1
        vServerName: vs1
        vServerAddr: 10.8.0.4
"""

BACKEND = """
apiVersion: v1
kind: List
items:
  - apiVersion: v1
    kind: Service
    metadata:
      name: svc
      namespace: ns1
    spec:
      type: ClusterIP
      ports:
        - name: http
          port: 80
          targetPort: 8080
  - apiVersion: v1
    kind: Endpoints
    metadata:
      name: svc
      namespace: ns1
    subsets:
      - addresses:
          - ip: 10.1.0.4
        ports:
          - name: http
            port: 8080
"""

ROUTE = """
apiVersion: route.openshift.io/v1
kind: Route
metadata:
  name: web
  namespace: ns1
  creationTimestamp: "2024-01-01T00:00:00Z"
spec:
  host: {host}
  path: /app
  to:
    kind: Service
    name: svc
  port:
    targetPort: http
  tls:
    termination: edge
    insecureEdgeTerminationPolicy: Allow
    certificate: CERT
    key: KEY
"""


class RecordingController:
    def __init__(self):
        self.observed = []

    def observe(self, resource, deleted=False):
        self.observed.append((type(resource).__name__, resource.name, deleted))


def write_manifests(directory: Path, host: str = "foo.com") -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "00-namespace.yaml").write_text(NAMESPACE)
    (directory / "10-global-spec.yaml").write_text(GLOBAL_SPEC)
    (directory / "20-backend.yaml").write_text(BACKEND)
    (directory / "30-route.yaml").write_text(ROUTE.format(host=host))


def build_watcher(path: Path, controller) -> FileResourceWatcher:
    return FileResourceWatcher(
        controller=controller,
        path=path,
        interval=0.1,
        stop_event=Event(),
    )


def test_load_manifests(tmp_path: Path):
    write_manifests(tmp_path)

    resources = load_manifests(tmp_path)

    kinds = [type(r).__name__ for r in resources]
    assert kinds == ["Namespace", "ConfigMap", "Service", "Endpoints", "Route"]
    configmap = resources[1]
    assert isinstance(configmap, ConfigMap)
    assert "vServerName: vs1" in configmap.data["extendedSpec"]
    service = resources[2]
    assert isinstance(service, Service)
    assert service.ports[0].target_port == 8080
    route = resources[4]
    assert isinstance(route, Route)
    assert route.target_port == "http"
    assert route.tls.certificate == "CERT"
    assert route.tls.handles_http() is True
    assert route.creation_timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_watcher_publishes_changes(tmp_path: Path):
    write_manifests(tmp_path)
    controller = RecordingController()
    watcher = build_watcher(tmp_path, controller)

    watcher.poll()
    assert controller.observed[0] == ("Namespace", "ns1", False)
    assert len(controller.observed) == 5

    controller.observed.clear()
    watcher.poll()
    assert controller.observed == []

    write_manifests(tmp_path, host="bar.com")
    watcher.poll()
    assert controller.observed == [("Route", "web", False)]

    controller.observed.clear()
    (tmp_path / "30-route.yaml").unlink()
    (tmp_path / "00-namespace.yaml").unlink()
    watcher.poll()
    assert controller.observed == [("Route", "web", True), ("Namespace", "ns1", True)]


def test_watcher_ignores_invalid_manifests(tmp_path: Path):
    write_manifests(tmp_path)
    controller = RecordingController()
    watcher = build_watcher(tmp_path, controller)
    watcher.poll()
    controller.observed.clear()

    (tmp_path / "40-broken.yaml").write_text("kind: Route\nmetadata: [oops")
    watcher.poll()
    (tmp_path / "40-broken.yaml").write_text("kind: Deployment\nmetadata:\n  name: x\n")
    watcher.poll()

    assert controller.observed == []


def test_watcher_waits_for_missing_path(tmp_path: Path):
    controller = RecordingController()
    watcher = build_watcher(tmp_path / "missing", controller)

    watcher.poll()

    assert controller.observed == []


def test_load_namespace_manifest(tmp_path: Path):
    (tmp_path / "ns.yaml").write_text(NAMESPACE)

    assert load_manifests(tmp_path) == [Namespace("ns1")]


def test_main_once_writes_declaration(tmp_path: Path):
    manifests = tmp_path / "manifests"
    write_manifests(manifests)
    output_dir = tmp_path / "out"
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        textwrap.dedent(
            f"""
            agent:
              output_dir: {output_dir}
            controller:
              route_spec_configmap: kube-system/global-spec
              pool_member_type: cluster
            watchers:
              - type: file
                path: {manifests}
            """
        )
    )

    assert main(["--config", str(config_path), "--once"]) == 0

    declaration = json.loads((output_dir / "ltm.json").read_text())
    virtuals = declaration["partitions"]["ns1"]["virtualServers"]
    assert [v["name"] for v in virtuals] == ["vs1_443", "vs1_80"]
    assert declaration["partitions"]["ns1"]["pools"][0]["members"] == [
        {"address": "10.1.0.4", "port": 8080, "session": "user-enabled"}
    ]
