import pytest
import yaml

from route_vs.errors import UnknownResourceKind
from route_vs.models import (
    ConfigMap,
    EndpointPort,
    Endpoints,
    EndpointSubset,
    Namespace,
    Route,
    RouteTLS,
    Service,
    ServicePort,
)
from route_vs_controller import Controller, ControllerSettings, RouteEvent
from route_vs_controller.agents import DeviceAgent

GLOBAL_SPEC = ConfigMap(
    namespace="kube-system",
    name="global-spec",
    data={
        "extendedSpec": yaml.safe_dump(
            {
                "extendedRouteGroupConfigs": [
                    {"namespace": "ns1", "vServerName": "vs1", "vServerAddr": "10.8.0.4"},
                ]
            }
        )
    },
)
SERVICE = Service(namespace="ns1", name="svc", ports=(ServicePort(port=80, name="http"),))
ENDPOINTS = Endpoints(
    namespace="ns1",
    name="svc",
    subsets=(EndpointSubset(addresses=("10.1.0.4",), ports=(EndpointPort(8080, "http"),)),),
)
ROUTE = Route(namespace="ns1", name="web", host="foo.com", service_name="svc", path="/app")


class RecordingAgent(DeviceAgent):
    def __init__(self):
        self.requests = []

    def post_config(self, request):
        self.requests.append(request)


def build_controller(namespaces=("ns1",)):
    settings = ControllerSettings(
        route_spec_configmap="kube-system/global-spec",
        pool_member_type="cluster",
        namespaces=list(namespaces),
        queue_base_delay=0.0,
        queue_max_delay=0.0,
    )
    agent = RecordingAgent()
    return Controller.build(settings, agent), agent


def build_running_controller():
    controller, agent = build_controller()
    for resource in (GLOBAL_SPEC, SERVICE, ENDPOINTS, ROUTE):
        controller.observe(resource)
    controller.initialise()
    controller.drain()
    return controller, agent


def test_initial_sync_posts_single_request():
    controller, agent = build_running_controller()

    assert len(agent.requests) == 1
    request = agent.requests[0]
    assert request.request_id == 1
    config = request.ltm_config["ns1"]["vs1_80"]
    assert config.address == "10.8.0.4"
    members = config.pools[0].members
    assert [(m.address, m.port) for m in members] == [("10.1.0.4", 8080)]
    assert controller.init_state is False
    assert controller.store.is_config_updated() is False


def test_posted_snapshot_is_detached_from_store():
    controller, agent = build_running_controller()

    agent.requests[0].ltm_config["ns1"]["vs1_80"].pools.clear()

    assert controller.store.get_virtual_server("ns1", "vs1_80").pools


def test_bulk_load_defers_routes_until_services_seen():
    controller, _ = build_controller(namespaces=())
    controller.start_namespace("ns1")
    controller.set_initial_service_count(2)
    controller.observe(ROUTE)

    assert controller.process_next_item(timeout=0) is True

    assert controller.queue.num_requeues(RouteEvent(ROUTE)) == 1
    assert list(controller.store.virtual_servers()) == []
    assert controller.init_state is True


def test_no_bulk_load_without_services():
    controller, _ = build_controller(namespaces=())

    controller.set_initial_service_count(0)

    assert controller.init_state is False


def test_route_change_triggers_new_request():
    controller, agent = build_running_controller()

    controller.observe(Route(namespace="ns1", name="api", host="foo.com", service_name="svc", path="/api"))
    controller.drain()

    assert len(agent.requests) == 2
    assert agent.requests[1].request_id == 2
    rules = agent.requests[1].ltm_config["ns1"]["vs1_80"].policies[0].rules
    assert [rule.uri for rule in rules] == ["foo.com/api", "foo.com/app"]


def test_unchanged_event_posts_nothing():
    controller, agent = build_running_controller()

    controller.observe(ROUTE)
    controller.drain()

    assert len(agent.requests) == 1


def test_missing_spec_is_retried():
    controller, _ = build_controller(namespaces=())
    controller.start_namespace("ns2")
    controller.set_initial_service_count(0)
    route = Route(namespace="ns2", name="web", host="bar.com", service_name="svc")
    controller.observe(route)

    controller.process_next_item(timeout=0)

    assert controller.queue.num_requeues(RouteEvent(route)) == 1
    assert len(controller.queue) == 1


def test_malformed_local_spec_is_not_retried():
    controller, _ = build_running_controller()
    broken = ConfigMap("ns1", "local-spec", {"extendedSpec": "unexpected: true"})
    controller.observe(broken)

    processed = controller.drain()

    assert processed == 1
    assert len(controller.queue) == 0


def test_invalid_route_tls_is_not_retried():
    controller, agent = build_running_controller()
    route = Route(
        namespace="ns1",
        name="secure",
        host="foo.com",
        service_name="svc",
        path="/secure",
        tls=RouteTLS(termination="bogus", certificate="CERT", key="KEY"),
    )
    controller.observe(route)

    processed = controller.drain()

    assert processed == 1
    assert controller.queue.num_requeues(RouteEvent(route)) == 0
    assert len(controller.queue) == 0
    assert len(agent.requests) == 1


def test_events_from_unwatched_namespace_ignored():
    controller, _ = build_running_controller()

    controller.observe(Route(namespace="other", name="web", host="x.com", service_name="svc"))
    controller.observe(ConfigMap("other", "plain", {"foo": "bar"}))

    assert len(controller.queue) == 0


def test_namespace_delete_drops_virtual_servers():
    controller, agent = build_running_controller()

    controller.observe(Namespace("ns1"), deleted=True)
    controller.drain()

    assert controller.informers.is_watched("ns1") is False
    assert agent.requests[-1].ltm_config == {"ns1": {}}
    assert list(controller.store.virtual_servers()) == []

    controller.observe(ROUTE)
    assert len(controller.queue) == 0


def test_namespace_add_replays_cached_objects():
    controller, agent = build_controller(namespaces=())
    for resource in (GLOBAL_SPEC, SERVICE, ENDPOINTS, ROUTE):
        controller.observe(resource)
    controller.initialise()

    controller.observe(Namespace("ns1"))
    controller.drain()

    assert controller.informers.is_watched("ns1") is True
    assert agent.requests[-1].ltm_config["ns1"]["vs1_80"].hosts == ["foo.com"]


def test_unknown_item_kind_rejected():
    controller, _ = build_controller()

    with pytest.raises(UnknownResourceKind):
        controller._dispatch(object())
