"""Unit tests for CreateInstance / ModifyInstance / SetRenewal payloads."""

from __future__ import annotations

import re

import pytest

from amqp_provisioner.api.errors import ConfigurationError
from amqp_provisioner.config.models import InstanceConfig, ProviderConfig
from amqp_provisioner.resource.request import (
    RequestBuilder,
    build_client_token,
    check_eip_throughput,
)


def _builder(region: str = "cn-hangzhou") -> RequestBuilder:
    return RequestBuilder(
        ProviderConfig(region_id=region), token_factory=lambda action: f"tok-{action}"
    )


def _config(**overrides) -> InstanceConfig:
    base = {
        "instance_type": "vip",
        "max_tps": "1000",
        "queue_capacity": "100",
        "support_eip": True,
        "max_eip_tps": "50",
    }
    base.update(overrides)
    return InstanceConfig(**base)


class TestClientToken:
    def test_format_and_length(self):
        token = build_client_token("CreateInstance")
        assert re.fullmatch(r"TF-CreateInstance-\d+-[0-9a-f]{32}", token)
        assert len(token) <= 64

    def test_unique_per_call(self):
        assert build_client_token("SetRenewal") != build_client_token("SetRenewal")

    def test_truncated_to_64(self):
        assert len(build_client_token("X" * 100, prefix="P")) == 64


class TestCreateRequest:
    def test_parameter_list(self):
        request = _builder().create_request(_config())

        assert request["Parameter"] == [
            {"Code": "Region", "Value": "cn-hangzhou"},
            {"Code": "InstanceType", "Value": "vip"},
            {"Code": "MaxEipTps", "Value": "50"},
            {"Code": "MaxTps", "Value": "1000"},
            {"Code": "QueueCapacity", "Value": "100"},
            {"Code": "SupportEip", "Value": "eip_true"},
        ]
        assert request["SubscriptionType"] == "Subscription"
        assert request["ProductCode"] == "ons"
        assert request["ProductType"] == "ons_onsproxy_pre"
        assert request["ClientToken"] == "tok-CreateInstance"

    def test_optional_fields_omitted_when_unset(self):
        request = _builder().create_request(_config())
        for key in ("Period", "RenewPeriod", "RenewalStatus", "Logistics"):
            assert key not in request

    def test_billing_fields(self):
        request = _builder().create_request(
            _config(
                period=12,
                renewal_duration=3,
                renewal_status="AutoRenewal",
                logistics="none",
            )
        )
        assert request["Period"] == 12
        assert request["RenewPeriod"] == 3
        assert request["RenewalStatus"] == "AutoRenewal"
        assert request["Logistics"] == "none"

    def test_support_eip_false_still_sent(self):
        request = _builder().create_request(
            _config(support_eip=False, max_eip_tps=None)
        )
        codes = {p["Code"]: p["Value"] for p in request["Parameter"]}
        assert codes["SupportEip"] == "eip_false"
        assert "MaxEipTps" not in codes

    def test_storage_size_only_for_vip(self):
        vip = _builder().create_request(_config(storage_size="200"))
        pro = _builder().create_request(
            _config(instance_type="professional", storage_size="200")
        )
        assert {"Code": "StorageSize", "Value": "200"} in vip["Parameter"]
        assert all(p["Code"] != "StorageSize" for p in pro["Parameter"])

    def test_region_from_provider(self):
        request = _builder("ap-southeast-1").create_request(_config())
        assert request["Parameter"][0] == {"Code": "Region", "Value": "ap-southeast-1"}


class TestRenewalRequest:
    def test_none_without_billing_changes(self):
        assert _builder().renewal_request("amqp-1", _config(), {"max_tps"}) is None

    def test_only_changed_fields_plus_status(self):
        config = _config(
            renewal_status="AutoRenewal",
            renewal_duration=6,
            renewal_duration_unit="Month",
        )
        request = _builder().renewal_request("amqp-1", config, {"renewal_duration"})

        assert request == {
            "InstanceIDs": "amqp-1",
            "ProductCode": "ons",
            "ProductType": "ons_onsproxy_pre",
            "RenewalStatus": "AutoRenewal",
            "RenewalPeriod": 6,
            "ClientToken": "tok-SetRenewal",
        }

    def test_unit_is_translated(self):
        config = _config(renewal_status="AutoRenewal", renewal_duration_unit="Year")
        request = _builder().renewal_request(
            "amqp-1", config, {"renewal_duration_unit", "payment_type"}
        )
        assert request["RenewalPeriodUnit"] == "Y"
        assert request["SubscriptionType"] == "Subscription"


class TestModifyRequest:
    def test_only_changed_capacity(self):
        request = _builder().modify_request(
            "amqp-1", _config(modify_type="Upgrade"), {"max_tps"}
        )

        assert request["InstanceId"] == "amqp-1"
        assert request["Parameter"] == [{"Code": "MaxTps", "Value": "1000"}]
        assert request["ModifyType"] == "Upgrade"
        assert request["ClientToken"] == "tok-ModifyInstance"

    def test_eip_pair_sent_together(self):
        request = _builder().modify_request("amqp-1", _config(), {"max_eip_tps"})
        assert request["Parameter"] == [
            {"Code": "MaxEipTps", "Value": "50"},
            {"Code": "SupportEip", "Value": "eip_true"},
        ]

    def test_new_resource_sends_everything(self):
        request = _builder().modify_request(
            "amqp-1", _config(), set(), new_resource=True
        )
        assert [p["Code"] for p in request["Parameter"]] == [
            "MaxEipTps",
            "MaxTps",
            "QueueCapacity",
            "SupportEip",
        ]

    def test_none_without_capacity_changes(self):
        assert (
            _builder().modify_request("amqp-1", _config(), {"renewal_status"}) is None
        )

    def test_missing_eip_throughput_rejected(self):
        with pytest.raises(ConfigurationError, match="max_eip_tps"):
            _builder().modify_request(
                "amqp-1", _config(max_eip_tps=None), {"max_tps"}
            )


class TestCheckEipThroughput:
    def test_eip_disabled_needs_nothing(self):
        check_eip_throughput(_config(support_eip=False, max_eip_tps=None))

    def test_empty_throughput_rejected(self):
        with pytest.raises(ConfigurationError):
            check_eip_throughput(_config(max_eip_tps=""))
