"""Typed view over the ``REGISTRATION`` settings dict."""

from dataclasses import dataclass, field

from django.conf import settings

DEFAULTS = {
    "CURRENCY": "USD",
    "SUPPORTED_CURRENCIES": ("USD",),
    "PAYMENT_GATEWAY_URL": "",
    "PAYMENT_GATEWAY_API_KEY": "",
    "PAYMENT_TIMEOUT_SECONDS": 10.0,
    "BUSINESS_OPEN_HOUR": 9,
    "BUSINESS_CLOSE_HOUR": 17,
    "NOTIFICATION_FROM_EMAIL": "workshops@example.com",
    "BLOCKED_DATES_CACHE_TTL": 300,
}


@dataclass(frozen=True)
class RegistrationSettings:
    currency: str = "USD"
    supported_currencies: tuple[str, ...] = field(default=("USD",))
    payment_gateway_url: str = ""
    payment_gateway_api_key: str = ""
    payment_timeout_seconds: float = 10.0
    business_open_hour: int = 9
    business_close_hour: int = 17
    notification_from_email: str = "workshops@example.com"
    blocked_dates_cache_ttl: int = 300


def get_registration_settings() -> RegistrationSettings:
    values = {**DEFAULTS, **getattr(settings, "REGISTRATION", {})}
    return RegistrationSettings(
        currency=values["CURRENCY"],
        supported_currencies=tuple(values["SUPPORTED_CURRENCIES"]),
        payment_gateway_url=values["PAYMENT_GATEWAY_URL"],
        payment_gateway_api_key=values["PAYMENT_GATEWAY_API_KEY"],
        payment_timeout_seconds=float(values["PAYMENT_TIMEOUT_SECONDS"]),
        business_open_hour=int(values["BUSINESS_OPEN_HOUR"]),
        business_close_hour=int(values["BUSINESS_CLOSE_HOUR"]),
        notification_from_email=values["NOTIFICATION_FROM_EMAIL"],
        blocked_dates_cache_ttl=int(values["BLOCKED_DATES_CACHE_TTL"]),
    )
