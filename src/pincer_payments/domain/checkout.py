"""Request-scoped checkout payloads sent by the ordering front end."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def _numbers_as_text(value: object) -> object:
    """Accept JSON numbers for fields the gateway expects as text."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class BrowserInfo(BaseModel):
    """Browser fingerprint collected by the checkout page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    language: str | None = None
    color_depth: int | str | None = None
    screen_width: int | str | None = None
    screen_height: int | str | None = None
    time_zone: int | str | None = None
    user_agent: str | None = None
    accept_header: str | None = None
    javascript_enabled: bool | None = None

    @field_validator("language", "user_agent", "accept_header", mode="before")
    @classmethod
    def numbers_as_text(cls, value: object) -> object:
        return _numbers_as_text(value)


class PaymentRequest(BaseModel):
    """Card payment submitted by the checkout page.

    Every field is optional at the schema level so that missing card data is
    reported through the payment flow's own validation. Numeric card fields
    and order references are accepted and kept as text.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    card_number: str | None = None
    expiration: str | None = None
    cvc: str | None = None
    amount: str | int | float | None = None
    itbis: str | int | float | None = None
    custom_order_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    browser_info: BrowserInfo | None = None

    @field_validator(
        "card_number",
        "expiration",
        "cvc",
        "custom_order_id",
        "customer_name",
        "customer_phone",
        "customer_email",
        mode="before",
    )
    @classmethod
    def numbers_as_text(cls, value: object) -> object:
        return _numbers_as_text(value)


class ContinueRequest(BaseModel):
    """Resume authorization after the 3DS method step."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str | None = None
    azul_order_id: str | None = None

    @field_validator("session_id", "azul_order_id", mode="before")
    @classmethod
    def numbers_as_text(cls, value: object) -> object:
        return _numbers_as_text(value)


@dataclass(frozen=True)
class ClientContext:
    """Network details of the caller taken from the HTTP request."""

    ip_address: str
    user_agent: str | None = None
    accept_header: str | None = None
