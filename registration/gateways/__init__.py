from registration.gateways.notifier import DjangoMailNotifier, Notifier
from registration.gateways.payment import (
    GatewayCharge,
    GatewayRefund,
    HttpPaymentGateway,
    PaymentGateway,
    SimulatedPaymentGateway,
)

__all__ = [
    "DjangoMailNotifier",
    "GatewayCharge",
    "GatewayRefund",
    "HttpPaymentGateway",
    "Notifier",
    "PaymentGateway",
    "SimulatedPaymentGateway",
]
