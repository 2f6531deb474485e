"""CarGo booking core: rental windows, pricing, and the payment-gated booking flow."""

__version__ = "0.1.0"
