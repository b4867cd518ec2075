"""Cross-cutting infrastructure protocols."""

from creditledger.core.protocols.payment import PaymentGatewayProtocol

__all__ = ["PaymentGatewayProtocol"]
