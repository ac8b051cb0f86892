"""Unit tests for the YAML config loader and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from amqp_provisioner.config.loader import (
    load_instance_config,
    load_provider_config,
    load_yaml,
    resolve_env_vars,
)
from amqp_provisioner.config.models import InstanceConfig

EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "examples" / "instance.yaml"


class TestResolveEnvVars:
    def test_plain_string_unchanged(self):
        assert resolve_env_vars("hello") == "hello"

    def test_substitutes_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("AMQP_TPS", "5000")
        assert resolve_env_vars("${AMQP_TPS}") == "5000"

    def test_default_when_var_missing(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("AMQP_MISSING", raising=False)
        assert resolve_env_vars("${AMQP_MISSING:-fallback}") == "fallback"

    def test_missing_var_no_default_raises(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("AMQP_UNDEFINED", raising=False)
        with pytest.raises(ValueError, match="AMQP_UNDEFINED"):
            resolve_env_vars("${AMQP_UNDEFINED}")

    def test_nested_structures(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("AMQP_REGION", "cn-beijing")
        data = {"a": ["${AMQP_REGION}", 3], "b": {"c": "x-${AMQP_REGION}"}}
        assert resolve_env_vars(data) == {
            "a": ["cn-beijing", 3],
            "b": {"c": "x-cn-beijing"},
        }


class TestLoadYaml:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "absent.yaml")

    def test_non_mapping_rejected(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(TypeError, match="mapping"):
            load_yaml(path)

    def test_parse_error_reports_location(self, tmp_path: Path):
        path = tmp_path / "broken.yaml"
        path.write_text("a: [1, 2\n")
        with pytest.raises(ValueError, match="line"):
            load_yaml(path)


class TestLoadProviderConfig:
    def test_builtin_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("AMQP_REGION_ID", raising=False)
        cfg = load_provider_config()
        assert cfg.region_id == "cn-hangzhou"
        assert cfg.endpoints.bss == "business.aliyuncs.com"

    def test_region_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("AMQP_REGION_ID", "cn-shenzhen")
        assert load_provider_config().region_id == "cn-shenzhen"

    def test_override_file_merges(self, tmp_path: Path):
        path = tmp_path / "provider.yaml"
        path.write_text("region_id: eu-central-1\nretry:\n  increment_seconds: 1\n")

        cfg = load_provider_config(path)

        assert cfg.region_id == "eu-central-1"
        assert cfg.retry.increment_seconds == 1
        assert cfg.retry.base_delay_seconds == 3

    def test_invalid_override_names_file(self, tmp_path: Path):
        path = tmp_path / "provider.yaml"
        path.write_text("poll:\n  page_size: 0\n")
        with pytest.raises(ValueError, match="Invalid provider config"):
            load_provider_config(path)


class TestLoadInstanceConfig:
    def test_example_config(self):
        cfg = load_instance_config(EXAMPLE_CONFIG)
        assert cfg.instance_type == "vip"
        assert cfg.support_eip is True
        assert cfg.payment_type == "Subscription"

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("AMQP_MAX_TPS", "3000")
        path = tmp_path / "instance.yaml"
        path.write_text(
            "instance_type: professional\n"
            "max_tps: ${AMQP_MAX_TPS}\n"
            "queue_capacity: '50'\n"
            "support_eip: false\n"
        )
        assert load_instance_config(path).max_tps == "3000"

    def test_validated_directly_from_yaml(self, tmp_path: Path):
        path = tmp_path / "instance.yaml"
        path.write_text(
            "instance_type: vip\n"
            "max_tps: '1000'\n"
            "queue_capacity: '100'\n"
            "support_eip: false\n"
        )
        cfg = load_instance_config(path)
        assert cfg == InstanceConfig(
            instance_type="vip",
            max_tps="1000",
            queue_capacity="100",
            support_eip=False,
        )
        assert cfg.payment_type == "Subscription"

    def test_invalid_config_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "instance.yaml"
        path.write_text("instance_type: vip\n")
        with pytest.raises(ValueError, match="Invalid instance config"):
            load_instance_config(path)
