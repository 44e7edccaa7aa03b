"""Tests for payment adapter selection and the fake provider."""

import pytest

import storefront.gateway as gateway_module
from storefront.gateway import get_gateway, register_adapter, reset_gateway, set_gateway
from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.port import CaptureStatus


class TestAdapterSelection:
    def test_fake_is_default(self, monkeypatch):
        monkeypatch.delenv("PAYMENT_GATEWAY", raising=False)
        reset_gateway()
        assert isinstance(get_gateway(), FakeGateway)

    def test_same_instance_until_reset(self):
        first = get_gateway()
        assert get_gateway() is first
        reset_gateway()
        assert get_gateway() is not first

    def test_unknown_adapter_name(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "carrier-pigeon")
        reset_gateway()
        with pytest.raises(ValueError, match="carrier-pigeon"):
            get_gateway()

    def test_registered_adapter_is_selected(self, monkeypatch):
        monkeypatch.setattr(gateway_module, "_ADAPTERS", dict(gateway_module._ADAPTERS))
        monkeypatch.setenv("PAYMENT_GATEWAY", "Sandbox")

        class SandboxGateway(FakeGateway):
            pass

        register_adapter("sandbox", SandboxGateway)
        reset_gateway()
        assert isinstance(get_gateway(), SandboxGateway)

    def test_set_gateway_pins_instance(self):
        pinned = FakeGateway()
        set_gateway(pinned)
        assert get_gateway() is pinned


class TestFakeGateway:
    def test_create_and_capture(self):
        fake = FakeGateway()
        session = fake.create_payment("order-1", 49.99, "USD")
        result = fake.capture_payment(session.payment_id)

        assert session.amount == 49.99
        assert result.succeeded
        assert result.status == CaptureStatus.COMPLETED.value
        assert [call["method"] for call in fake.calls] == ["create_payment", "capture_payment"]

    def test_declined_capture(self):
        fake = FakeGateway()
        fake.configure(should_succeed=False, failure_reason="Card expired")
        result = fake.capture_payment("fake_pay_1")
        assert not result.succeeded
        assert result.failure_reason == "Card expired"
