from __future__ import annotations

from gateway_fixtures import (
    RecordingRealizer,
    gateway_class_obj,
    gateway_obj,
    http_listener,
    https_listener,
    make_config,
    secret_obj,
    seeded_store,
)

from lb_gateway.controller import GatewayController
from lb_gateway.graph.model import ModelCache
from lb_gateway.providers.errors import RealizationError
from lb_gateway.status.conditions import find_condition


def _controller(store, realizer=None, **config_overrides) -> GatewayController:
    return GatewayController(
        config=make_config(**config_overrides),
        store=store,
        realizer=realizer or RecordingRealizer(),
    )


def _condition(store, type_, name="gw"):
    return find_condition(store.get_gateway("default", name).status.conditions, type_)


def test_sync_programs_valid_gateway() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer(vip="10.1.1.1")
    controller = _controller(store, realizer)

    status = controller.sync_gateway("default", "gw")

    assert status is not None
    assert len(realizer.pushes) == 1
    assert store.get_gateway("default", "gw").status.addresses == ["10.1.1.1"]
    assert _condition(store, "Accepted").status == "True"
    assert _condition(store, "Programmed").status == "True"


def test_unchanged_gateway_is_not_pushed_again() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")
    version = store.get_gateway("default", "gw").resource_version

    controller.sync_gateway("default", "gw")

    assert len(realizer.pushes) == 1
    assert store.get_gateway("default", "gw").resource_version == version


def test_listener_change_triggers_push() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")

    store.observe(
        "Gateway",
        "default",
        "gw",
        gateway_obj(listeners=[http_listener("http"), http_listener("alt", 8080)]),
    )
    controller.sync_gateway("default", "gw")

    assert len(realizer.pushes) == 2
    assert [entry.name for entry in store.get_gateway("default", "gw").status.listeners] == ["http", "alt"]


def test_unowned_gateway_is_left_alone() -> None:
    store = seeded_store(("Gateway", gateway_obj(class_name="other")))
    store.observe("GatewayClass", "", "other", gateway_class_obj("other", "example.com/other"))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)

    assert controller.sync_gateway("default", "gw") is None
    assert realizer.pushes == []
    assert store.get_gateway("default", "gw").status.conditions == []


def test_switching_class_withdraws_virtual_service_and_freezes_status() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    store.observe("GatewayClass", "", "other", gateway_class_obj("other", "example.com/other"))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")
    before = store.get_gateway("default", "gw").status

    store.observe("Gateway", "default", "gw", gateway_obj(class_name="other"))
    controller.sync_gateway("default", "gw")

    assert realizer.deletes == [("default/gw", "ako-gw-cl1--default-gw-EVH")]
    assert controller.models.get("default/gw") is None
    assert store.get_gateway("default", "gw").status == before


def test_invalid_gateway_after_programming_resets_status() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")

    store.observe("Gateway", "default", "gw", gateway_obj(addresses=("10.0.0.1", "10.0.0.2")))
    controller.sync_gateway("default", "gw")

    gateway = store.get_gateway("default", "gw")
    assert len(realizer.deletes) == 1
    assert gateway.status.addresses == []
    assert _condition(store, "Accepted").message == "More than one address is not supported"
    programmed = _condition(store, "Programmed")
    assert (programmed.status, programmed.reason) == ("Unknown", "Pending")


def test_deleted_gateway_withdraws_without_status_write() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")

    store.observe("Gateway", "default", "gw", None)
    assert controller.sync_gateway("default", "gw") is None
    assert len(realizer.deletes) == 1
    assert len(controller.models) == 0


def test_push_failure_is_reported_and_retried() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    realizer.fail_with = RealizationError("appliance unreachable", status_code=503)
    controller = _controller(store, realizer)

    controller.sync_gateway("default", "gw")
    programmed = _condition(store, "Programmed")
    assert programmed.status == "False"
    assert programmed.message == "Virtual service realization failed: appliance unreachable"

    realizer.fail_with = None
    controller.sync_gateway("default", "gw")
    assert len(realizer.pushes) == 1
    assert _condition(store, "Programmed").status == "True"


def test_secret_events_merge_into_existing_graph() -> None:
    listeners = [
        https_listener("a", "s1", hostname="a.example.com"),
        https_listener("b", "s2", port=8443, hostname="b.example.com"),
    ]
    store = seeded_store(("Gateway", gateway_obj(listeners=listeners)), ("Secret", secret_obj("s2")))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")
    model = controller.models.get("default/gw")
    assert [node.name for node in model.vs.tls_nodes] == ["ako-gw-cl1--b.example.com-s2"]
    assert _condition(store, "Accepted").reason == "ListenersNotValid"

    store.observe("Secret", "default", "s1", secret_obj("s1"))
    assert controller.sync_secret("default", "s1") == 1
    assert [node.name for node in model.vs.tls_nodes] == [
        "ako-gw-cl1--a.example.com-s1",
        "ako-gw-cl1--b.example.com-s2",
    ]
    assert _condition(store, "Accepted").status == "True"
    assert len(realizer.pushes) == 2

    store.observe("Secret", "default", "s1", None)
    controller.sync_secret("default", "s1")
    assert [node.name for node in model.vs.tls_nodes] == ["ako-gw-cl1--b.example.com-s2"]
    assert model.tls_index.as_dict() == {"ako-gw-cl1--b.example.com-s2": [0]}
    assert len(realizer.pushes) == 3


def test_unrelated_secret_touches_nothing() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")

    store.observe("Secret", "default", "other", secret_obj("other"))
    assert controller.sync_secret("default", "other") == 0
    assert len(realizer.pushes) == 1


def test_resync_withdraws_orphans_and_syncs_all() -> None:
    store = seeded_store(("Gateway", gateway_obj("one")), ("Gateway", gateway_obj("two")))
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "one")
    store.delete_gateway("default", "one")

    assert controller.resync_all() == 1
    assert controller.models.keys() == ["default/two"]
    assert realizer.deletes == [("default/one", "ako-gw-cl1--default-one-EVH")]
    assert store.get_gateway("default", "two").status.addresses == ["10.0.0.10"]


def test_gateway_class_event_syncs_its_gateways() -> None:
    store = seeded_store(("Gateway", gateway_obj("one")), ("Gateway", gateway_obj("two")))
    controller = _controller(store)
    controller.handle("GatewayClass//avi-lb")
    assert controller.models.keys() == ["default/one", "default/two"]


def _programmed_tls_gateway():
    store = seeded_store(
        ("Gateway", gateway_obj(listeners=[https_listener("https", "s1")])),
        ("Secret", secret_obj("s1")),
    )
    realizer = RecordingRealizer()
    controller = _controller(store, realizer)
    controller.sync_gateway("default", "gw")
    return store, realizer, controller


def test_secret_merge_after_ownership_loss_does_not_push() -> None:
    store, realizer, controller = _programmed_tls_gateway()
    model = controller.models.get("default/gw")
    snapshot = store.get_gateway("default", "gw")

    store.observe("GatewayClass", "", "avi-lb", gateway_class_obj("avi-lb", "example.com/other"))
    controller.sync_gateway("default", "gw")
    before = store.get_gateway("default", "gw").status
    store.observe("Secret", "default", "s1", secret_obj("s1", cert="ROTATED"))
    controller._merge_certificate(model, snapshot, "default", "s1", store.get_secret("default", "s1"))

    assert len(realizer.pushes) == 1
    assert len(realizer.deletes) == 1
    assert model.vs is None
    assert model.pushed_checksum is None
    assert controller.models.get("default/gw") is None
    assert store.get_gateway("default", "gw").status == before


def test_secret_merge_into_withdrawn_model_is_dropped() -> None:
    store, realizer, controller = _programmed_tls_gateway()
    model = controller.models.get("default/gw")
    snapshot = store.get_gateway("default", "gw")

    # The gateway is deleted while a secret pass still holds the old model.
    store.observe("Gateway", "default", "gw", None)
    controller.sync_gateway("default", "gw")
    store.observe("Secret", "default", "s1", secret_obj("s1", cert="ROTATED"))
    controller._merge_certificate(model, snapshot, "default", "s1", store.get_secret("default", "s1"))

    assert len(realizer.pushes) == 1
    assert realizer.deletes == [("default/gw", "ako-gw-cl1--default-gw-EVH")]
    assert model.vs is None
    assert len(controller.models) == 0


class _WithdrawingCache(ModelCache):
    """Loses every model to a concurrent withdraw right after handing it out."""

    def get_or_create(self, key):
        model = super().get_or_create(key)
        self.pop(key)
        return model


def test_rebuild_of_withdrawn_model_is_not_pushed() -> None:
    store = seeded_store(("Gateway", gateway_obj()))
    realizer = RecordingRealizer()
    controller = GatewayController(
        config=make_config(),
        store=store,
        realizer=realizer,
        models=_WithdrawingCache(),
    )

    assert controller.sync_gateway("default", "gw") is None
    assert realizer.pushes == []
    assert store.get_gateway("default", "gw").status.conditions == []
