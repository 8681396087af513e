from __future__ import annotations

import base64

import pytest
from gateway_fixtures import gateway_obj, https_listener, secret_obj

from lb_gateway.config import get_controller_config, load_controller_config, reset_config_cache
from lb_gateway.models import Condition, GatewayStatus, ListenerStatus
from lb_gateway.naming import split_key
from lb_gateway.placement import NetworkPlacementCache
from lb_gateway.store.memory import MemoryStore
from lb_gateway.wire import object_ref, parse_gateway, parse_secret, status_from_wire, status_to_wire


def test_config_defaults(monkeypatch) -> None:
    for name in ("LB_GATEWAY_CONTROLLER_NAME", "VIP_NETWORK_LIST", "LB_GATEWAY_STATUS_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    config = load_controller_config()
    assert config.controller_name == "ako.vmware.com/avi-lb"
    assert config.vip_networks == ()
    assert config.status_patch_retries == 5


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CLUSTER_NAME", "prod")
    monkeypatch.setenv("VIP_NETWORK_LIST", "net-a, net-b,")
    monkeypatch.setenv("LB_GATEWAY_ENCODE_NAMES", "yes")
    monkeypatch.setenv("LB_GATEWAY_STATUS_RETRIES", "0")
    monkeypatch.setenv("LB_GATEWAY_WORKERS", "not-a-number")
    config = load_controller_config()
    assert config.cluster_name == "prod"
    assert config.vip_networks == ("net-a", "net-b")
    assert config.encode_names is True
    assert config.status_patch_retries == 1
    assert config.workers == 8


def test_config_cache_reset(monkeypatch) -> None:
    reset_config_cache()
    monkeypatch.setenv("CLUSTER_NAME", "first")
    assert get_controller_config().cluster_name == "first"
    monkeypatch.setenv("CLUSTER_NAME", "second")
    assert get_controller_config().cluster_name == "first"
    reset_config_cache()
    assert get_controller_config().cluster_name == "second"
    reset_config_cache()


def test_parse_gateway_listeners_and_refs() -> None:
    obj = gateway_obj(listeners=[https_listener("https", "cert1")], addresses=("10.0.0.1",))
    obj["spec"]["listeners"][0]["tls"]["certificateRefs"][0]["namespace"] = "certs"
    gateway = parse_gateway(obj)
    listener = gateway.listeners[0]
    assert gateway.key == "default/gw"
    assert gateway.addresses == ("10.0.0.1",)
    assert listener.tls_enabled
    assert listener.tls.certificate_refs[0].resolve_namespace("default") == "certs"


def test_parse_rejects_malformed_objects() -> None:
    with pytest.raises(ValueError):
        parse_gateway({"metadata": {"name": "gw", "namespace": "default"}})
    with pytest.raises(ValueError):
        parse_gateway(gateway_obj(listeners=[{"name": "x", "port": "80", "protocol": "HTTP"}]))
    with pytest.raises(ValueError):
        parse_secret({"metadata": {"name": "s", "namespace": "d"}, "data": {"tls.crt": "%%%"}})
    with pytest.raises(ValueError):
        object_ref({"metadata": {"name": "gw"}})
    assert object_ref({"metadata": {"name": "cls"}}, namespaced=False) == ("", "cls")


def test_parse_secret_prefers_string_data() -> None:
    obj = secret_obj("s1", cert="PLAIN")
    obj["data"] = {"tls.crt": base64.b64encode(b"ENCODED").decode()}
    assert parse_secret(obj).cert == "PLAIN"


def test_status_wire_preserves_content() -> None:
    status = GatewayStatus(
        conditions=[Condition("Accepted", "True", "Accepted", "ok", 3, "2024-01-01T00:00:00Z")],
        listeners=[ListenerStatus("http", [Condition("Accepted", "False", "Invalid", "bad", 3, "")])],
        addresses=["10.0.0.1"],
    )
    wire = status_to_wire(status)
    assert wire["listeners"][0]["supportedKinds"] == [{"group": "gateway.networking.k8s.io", "kind": "HTTPRoute"}]
    assert status_from_wire(wire) == status


def test_split_key() -> None:
    assert split_key("Gateway/default/gw") == ("Gateway", "default", "gw")
    assert split_key("default/gw") == ("", "default", "gw")
    with pytest.raises(ValueError):
        split_key("gw")


def test_placement_fallback() -> None:
    cache = NetworkPlacementCache(default_networks=("vip-net",), overrides_enabled=True)
    assert cache.networks_for_namespace("team-a") == ["vip-net"]
    cache.put("team-a", "team-a-net")
    assert cache.get("team-a") == "team-a-net"
    assert cache.networks_for_namespace("team-a") == ["team-a-net"]
    cache.delete("team-a")
    assert cache.networks_for_namespace("team-a") == ["vip-net"]

    routed = NetworkPlacementCache(default_router="t1-default")
    routed.put_router("team-a", "t1-team-a")
    assert routed.router_for_namespace("team-a") == "t1-team-a"
    routed.delete_router("team-a")
    assert routed.router_for_namespace("team-a") == "t1-default"

    disabled = NetworkPlacementCache(default_networks=("vip-net",), overrides_enabled=False)
    disabled.put("team-a", "team-a-net")
    assert disabled.networks_for_namespace("team-a") == ["vip-net"]


def test_memory_store_tracks_generation_and_versions() -> None:
    store = MemoryStore()
    first = store.put_gateway(parse_gateway(gateway_obj()))
    same = store.put_gateway(parse_gateway(gateway_obj()))
    changed = store.put_gateway(parse_gateway(gateway_obj(addresses=("10.0.0.1",))))
    assert first.generation == same.generation == 1
    assert changed.generation == 2
    assert int(changed.resource_version) > int(same.resource_version) > int(first.resource_version)
