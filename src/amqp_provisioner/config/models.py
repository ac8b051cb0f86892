"""Pydantic configuration models for AMQP instance provisioning."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal, Self

from pydantic import BaseModel, Field, field_validator, model_validator


class InstanceType(StrEnum):
    """Instance tiers accepted by the provisioning API."""

    PROFESSIONAL = "professional"
    VIP = "vip"


class PaymentType(StrEnum):
    """Billing modes. Only prepaid subscriptions are sold for this product."""

    SUBSCRIPTION = "Subscription"


class RenewalDurationUnit(StrEnum):
    MONTH = "Month"
    YEAR = "Year"


class RenewalStatus(StrEnum):
    AUTO_RENEWAL = "AutoRenewal"
    MANUAL_RENEWAL = "ManualRenewal"
    NOT_RENEWAL = "NotRenewal"


class ModifyType(StrEnum):
    DOWNGRADE = "Downgrade"
    UPGRADE = "Upgrade"


class InstanceConfig(BaseModel, extra="forbid"):
    """Declared configuration of a single AMQP instance.

    Capacity quantities are kept as strings because the billing API takes
    them as opaque parameter values.  Billing knobs (``period`` and the
    ``renewal_*`` fields) only matter under certain payment / renewal
    combinations; see :mod:`amqp_provisioner.resource.diff`.
    """

    instance_type: InstanceType
    max_tps: str = Field(min_length=1)
    queue_capacity: str = Field(min_length=1)
    support_eip: bool
    max_eip_tps: str | None = None
    storage_size: str | None = None
    payment_type: PaymentType = PaymentType.SUBSCRIPTION
    period: Literal[1, 2, 3, 6, 12, 24] | None = None
    renewal_duration: Literal[1, 2, 3, 6, 12] | None = None
    renewal_duration_unit: RenewalDurationUnit | None = None
    renewal_status: RenewalStatus | None = None
    modify_type: ModifyType | None = None
    logistics: str | None = None

    @field_validator("max_tps", "queue_capacity", "max_eip_tps", "storage_size")
    @classmethod
    def validate_quantity(cls, v: str | None) -> str | None:
        """Quantities must be plain non-negative integers (e.g. ``"1000"``)."""
        if v is None or v == "":
            return v
        if not v.isdigit():
            msg = f"quantity '{v}' must be a non-negative integer string"
            raise ValueError(msg)
        return v


class EndpointConfig(BaseModel):
    """Remote API endpoints."""

    scheme: Literal["http", "https"] = "https"
    bss: str = "business.aliyuncs.com"
    # Used after a region-mismatch response from the domestic endpoint.
    bss_international: str = "business.ap-southeast-1.aliyuncs.com"
    amqp: str = "amqp-open.{region}.aliyuncs.com"

    def url(self, host: str) -> str:
        return f"{self.scheme}://{host}/"


class ProductConfig(BaseModel):
    """Fixed product identifiers and API versions."""

    product_code: str = "ons"
    product_type: str = "ons_onsproxy_pre"
    bss_api_version: str = "2017-12-14"
    amqp_api_version: str = "2019-12-12"
    success_code: str = "Success"


class RetryConfig(BaseModel):
    """Incrementing backoff used between retryable failures."""

    base_delay_seconds: float = Field(default=3.0, ge=0)
    increment_seconds: float = Field(default=3.0, ge=0)
    retryable_codes: list[str] = Field(
        default_factory=lambda: [
            "Throttling",
            "Throttling.User",
            "Throttling.Api",
            "ServiceUnavailable",
            "SystemBusy",
            "ServiceBusy",
            "InternalError",
            "LastTokenProcessing",
        ]
    )
    region_mismatch_codes: list[str] = Field(default_factory=lambda: ["NotApplicable"])


class PollConfig(BaseModel):
    """Readiness polling after instance creation."""

    interval_seconds: float = Field(default=5.0, ge=0)
    ready_states: list[str] = Field(default_factory=lambda: ["SERVING"])
    failure_states: list[str] = Field(default_factory=lambda: ["Failed"])
    page_size: int = Field(default=100, ge=1)


class TimeoutConfig(BaseModel):
    """Per-operation deadlines, in seconds."""

    create_seconds: float = Field(default=3 * 60 * 60, gt=0)
    update_seconds: float = Field(default=20 * 60, gt=0)
    read_seconds: float = Field(default=5 * 60, gt=0)


class TranslationConfig(BaseModel):
    """Lookup tables between declared values and remote API values."""

    instance_type_response: dict[str, str] = Field(
        default_factory=lambda: {"PROFESSIONAL": "professional", "VIP": "vip"}
    )
    renewal_unit_request: dict[str, str] = Field(
        default_factory=lambda: {"Month": "M", "Year": "Y"}
    )
    support_eip_request: dict[bool, str] = Field(
        default_factory=lambda: {True: "eip_true", False: "eip_false"}
    )

    @model_validator(mode="after")
    def check_invertible(self) -> Self:
        """The renewal unit table is read in both directions."""
        values = list(self.renewal_unit_request.values())
        if len(values) != len(set(values)):
            msg = "renewal_unit_request values must be unique"
            raise ValueError(msg)
        return self


class ProviderConfig(BaseModel):
    """Provider-wide settings: region, endpoints, retry and polling tuning."""

    region_id: str = "cn-hangzhou"
    endpoints: EndpointConfig = EndpointConfig()
    product: ProductConfig = ProductConfig()
    retry: RetryConfig = RetryConfig()
    poll: PollConfig = PollConfig()
    timeouts: TimeoutConfig = TimeoutConfig()
    translation: TranslationConfig = TranslationConfig()
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    client_token_prefix: str = Field(default="TF", min_length=1)

    @property
    def amqp_host(self) -> str:
        return self.endpoints.amqp.format(region=self.region_id)
