"""Value translation between declared configuration and the remote API.

Every lookup falls back to returning its input unchanged, so values the
remote API adds later pass through reads instead of breaking them.
"""

from __future__ import annotations

from typing import Any

from amqp_provisioner.config.models import TranslationConfig


class FieldTranslator:
    """Pure lookups built from a :class:`TranslationConfig`."""

    def __init__(self, config: TranslationConfig | None = None) -> None:
        cfg = config or TranslationConfig()
        self._instance_type_response = dict(cfg.instance_type_response)
        self._renewal_unit_request = dict(cfg.renewal_unit_request)
        self._renewal_unit_response = {
            remote: local for local, remote in cfg.renewal_unit_request.items()
        }
        self._support_eip_request = dict(cfg.support_eip_request)

    # -- Instance tier ---------------------------------------------------------

    def instance_type_to_remote(self, value: Any) -> Any:
        # The API accepts the lowercase spelling on requests.
        return value

    def instance_type_from_remote(self, value: Any) -> Any:
        return _lookup(self._instance_type_response, value)

    # -- Renewal period unit ---------------------------------------------------

    def renewal_unit_to_remote(self, value: Any) -> Any:
        return _lookup(self._renewal_unit_request, value)

    def renewal_unit_from_remote(self, value: Any) -> Any:
        return _lookup(self._renewal_unit_response, value)

    # -- EIP support -----------------------------------------------------------

    def support_eip_to_remote(self, value: Any) -> Any:
        if not isinstance(value, bool):
            return value
        return _lookup(self._support_eip_request, value)


def _lookup(table: dict[Any, Any], value: Any) -> Any:
    try:
        return table.get(value, value)
    except TypeError:
        # unhashable input
        return value
