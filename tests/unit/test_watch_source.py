from threading import Event

import pytest
from kubernetes.client import ApiException, V1ConfigMap, V1ConfigMapList, V1ListMeta, V1ObjectMeta

from nkl_configuration import ConfigMapWatchSource, ConfigSync, RegistrationError


def config_map(name: str, hosts: str, version: str) -> V1ConfigMap:
    return V1ConfigMap(
        metadata=V1ObjectMeta(name=name, namespace="nkl", resource_version=version),
        data={"nginx-hosts": hosts},
    )


def listing(*items, version="10") -> V1ConfigMapList:
    return V1ConfigMapList(items=list(items), metadata=V1ListMeta(resource_version=version))


class FakeCoreApi:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.list_calls = []

    def list_namespaced_config_map(self, namespace, **kwargs):
        self.list_calls.append(namespace)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class ScriptedWatches:
    """Replaces ``kubernetes.watch.Watch`` with scripted streams.

    Each call to ``stream`` consumes the next script entry; once the scripts
    run out the stop event is set so the loop exits.
    """

    def __init__(self, stop_event: Event):
        self.stop_event = stop_event
        self.scripts = []
        self.stream_calls = []

    def __call__(self):
        return _ScriptedWatch(self)


class _ScriptedWatch:
    def __init__(self, owner: ScriptedWatches):
        self._owner = owner
        self.stopped = False

    def stream(self, func, **kwargs):
        self._owner.stream_calls.append(kwargs)
        if not self._owner.scripts:
            self._owner.stop_event.set()
            return iter(())
        script = self._owner.scripts.pop(0)
        if isinstance(script, Exception):
            raise script
        return iter(script)

    def stop(self):
        self.stopped = True


@pytest.fixture
def stop_event() -> Event:
    return Event()


@pytest.fixture
def watches(monkeypatch, stop_event) -> ScriptedWatches:
    scripted = ScriptedWatches(stop_event)
    monkeypatch.setattr("nkl_configuration.watch.watch.Watch", scripted)
    return scripted


class Recorder:
    def __init__(self):
        self.calls = []

    def added(self, obj):
        self.calls.append(("added", obj.metadata.name, None))

    def updated(self, obj, previous):
        prev = previous.metadata.resource_version if previous is not None else None
        self.calls.append(("updated", obj.metadata.name, prev))

    def deleted(self, obj):
        self.calls.append(("deleted", obj.metadata.name, None))


def register(source: ConfigMapWatchSource) -> Recorder:
    recorder = Recorder()
    source.add_event_handler("nkl", recorder.added, recorder.updated, recorder.deleted)
    return recorder


def test_registration_rejects_other_namespace():
    source = ConfigMapWatchSource(FakeCoreApi(listing()), "nkl")

    with pytest.raises(RegistrationError):
        source.add_event_handler("default", print, print, print)


def test_registration_rejects_second_subscription():
    source = ConfigMapWatchSource(FakeCoreApi(listing()), "nkl")
    register(source)

    with pytest.raises(RegistrationError):
        register(source)


def test_registration_after_stop_fails():
    source = ConfigMapWatchSource(FakeCoreApi(listing()), "nkl")
    source.stop()

    with pytest.raises(RegistrationError):
        register(source)


def test_list_then_watch_dispatches_serially(watches, stop_event):
    api = FakeCoreApi(listing(config_map("nkl-config", "h1", "5"), version="10"))
    watches.scripts.append(
        [
            {"type": "MODIFIED", "object": config_map("nkl-config", "h1,h2", "11")},
            {"type": "ADDED", "object": config_map("extra", "x", "12")},
            {"type": "DELETED", "object": config_map("nkl-config", "h1,h2", "13")},
        ]
    )
    source = ConfigMapWatchSource(api, "nkl")
    recorder = register(source)

    source.run(stop_event)

    assert recorder.calls == [
        ("added", "nkl-config", None),
        ("updated", "nkl-config", "5"),
        ("added", "extra", None),
        ("deleted", "nkl-config", None),
    ]
    assert watches.stream_calls[0]["resource_version"] == "10"
    assert watches.stream_calls[0]["namespace"] == "nkl"
    assert watches.stream_calls[-1]["resource_version"] == "13"


def test_gone_triggers_relist(watches, stop_event):
    api = FakeCoreApi(
        listing(config_map("nkl-config", "h1", "5"), version="10"),
        listing(config_map("nkl-config", "h2", "20"), version="21"),
    )
    watches.scripts.append(ApiException(status=410, reason="Gone"))
    source = ConfigMapWatchSource(api, "nkl")
    recorder = register(source)

    source.run(stop_event)

    assert api.list_calls == ["nkl", "nkl"]
    assert recorder.calls == [
        ("added", "nkl-config", None),
        ("updated", "nkl-config", "5"),
    ]
    assert watches.stream_calls[-1]["resource_version"] == "21"


def test_error_event_with_gone_code_triggers_relist(watches, stop_event):
    api = FakeCoreApi(listing(version="10"), listing(version="30"))
    watches.scripts.append(
        [{"type": "ERROR", "object": None, "raw_object": {"code": 410, "message": "too old"}}]
    )
    source = ConfigMapWatchSource(api, "nkl")
    register(source)

    source.run(stop_event)

    assert len(api.list_calls) == 2
    assert watches.stream_calls[-1]["resource_version"] == "30"


def test_relist_reports_deleted_config_maps(watches, stop_event):
    api = FakeCoreApi(
        listing(config_map("nkl-config", "h1", "5"), version="10"),
        listing(version="21"),
    )
    watches.scripts.append(ApiException(status=410, reason="Gone"))
    source = ConfigMapWatchSource(api, "nkl")
    recorder = register(source)

    source.run(stop_event)

    assert recorder.calls[-1] == ("deleted", "nkl-config", None)


@pytest.mark.parametrize("status", [401, 403])
def test_access_denied_ends_loop(watches, stop_event, status):
    api = FakeCoreApi(ApiException(status=status, reason="Forbidden"))
    source = ConfigMapWatchSource(api, "nkl")
    register(source)

    source.run(stop_event)

    assert api.list_calls == ["nkl"]
    assert not stop_event.is_set()


def test_handler_failure_does_not_stop_stream(watches, stop_event):
    api = FakeCoreApi(listing(version="1"))
    watches.scripts.append(
        [
            {"type": "ADDED", "object": config_map("bad", "h1", "2")},
            {"type": "ADDED", "object": config_map("good", "h2", "3")},
        ]
    )
    seen = []

    def on_added(obj):
        if obj.metadata.name == "bad":
            raise RuntimeError("handler failure")
        seen.append(obj.metadata.name)

    source = ConfigMapWatchSource(api, "nkl")
    source.add_event_handler("nkl", on_added, lambda obj, prev: None, lambda obj: None)

    source.run(stop_event)

    assert seen == ["good"]


def test_run_requires_registration(stop_event):
    source = ConfigMapWatchSource(FakeCoreApi(listing()), "nkl")

    with pytest.raises(RuntimeError):
        source.run(stop_event)


def test_config_sync_end_to_end(watches, stop_event):
    api = FakeCoreApi(listing(config_map("nkl-config", "h1,h2", "5"), version="10"))
    watches.scripts.append(
        [{"type": "MODIFIED", "object": config_map("nkl-config", "h3", "11")}]
    )
    source = ConfigMapWatchSource(api, "nkl")
    sync = ConfigSync(source)
    sync.initialize()

    sync.run(stop_event)

    assert sync.hosts == ("h3",)
