from types import SimpleNamespace

import pytest

from capacity_assessment import observability


@pytest.fixture
def fresh(monkeypatch):
    monkeypatch.setattr(observability, "_initialized", False)
    monkeypatch.delenv("MAF_TRACING_CAPTURE_SENSITIVE", raising=False)
    calls = []

    def fake_import(name):
        calls.append(name)
        return SimpleNamespace(
            setup_observability=lambda **kwargs: calls.append(kwargs)
        )

    monkeypatch.setattr(observability, "import_module", fake_import)
    return calls


def test_blank_endpoint_skips_tracing(fresh, monkeypatch):
    monkeypatch.setenv("MAF_OTLP_ENDPOINT", "  ")

    assert observability.initialize_tracing() is False
    assert fresh == []


def test_tracing_is_set_up_once(fresh):
    assert observability.initialize_tracing(endpoint="http://collector:4317") is True
    assert observability.initialize_tracing(endpoint="http://collector:4317") is False

    assert fresh == [
        "agent_framework.observability",
        {"otlp_endpoint": "http://collector:4317", "enable_sensitive_data": False},
    ]


def test_setup_failure_is_reported_not_raised(monkeypatch):
    monkeypatch.setattr(observability, "_initialized", False)

    def broken(**kwargs):
        raise RuntimeError("collector unreachable")

    monkeypatch.setattr(
        observability,
        "import_module",
        lambda name: SimpleNamespace(setup_observability=broken),
    )

    assert observability.initialize_tracing(endpoint="http://collector:4317") is False
    assert observability._initialized is False
