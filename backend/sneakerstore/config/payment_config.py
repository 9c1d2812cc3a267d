"""
Payment system configuration for the Mercado Pago gateway.

Supports three operating modes:
- SIMULATION: Mock gateway for local development (no real API calls)
- SANDBOX: Gateway test credentials (for development/staging)
- PRODUCTION: Real transactions with live credentials
"""

import os
from typing import Dict, Any


# Payment operating mode
PAYMENT_MODE = os.getenv("PAYMENT_MODE", "SIMULATION")  # SIMULATION | SANDBOX | PRODUCTION

# Payment configuration
PAYMENT_CONFIG: Dict[str, Any] = {
    "mode": PAYMENT_MODE,

    # Mercado Pago Configuration (same REST host, credentials select sandbox vs live)
    "mercado_pago": {
        "sandbox_url": "https://api.mercadopago.com",
        "production_url": "https://api.mercadopago.com",
        "access_token": os.getenv("MERCADO_PAGO_ACCESS_TOKEN", ""),
        "notification_url": os.getenv(
            "MERCADO_PAGO_NOTIFICATION_URL",
            "http://localhost:8000/api/v1/payments/webhook"
        ),
        "request_timeout_seconds": int(os.getenv("MERCADO_PAGO_TIMEOUT_SECONDS", "30"))
    },

    # PIX (instant QR payment)
    "pix": {
        "discount_percent": float(os.getenv("PIX_DISCOUNT_PERCENT", "5")),
        "expiration_minutes": int(os.getenv("PIX_EXPIRATION_MINUTES", "30"))
    },

    # Boleto (bank slip)
    "boleto": {
        "due_days": int(os.getenv("BOLETO_DUE_DAYS", "3")),  # Business days
        "payment_method_id": "bolbradesco"
    },

    # Credit card
    "credit_card": {
        "max_installments": int(os.getenv("CARD_MAX_INSTALLMENTS", "12")),
        "brands": ["visa", "master", "amex", "elo", "hipercard"]
    },

    "currency": "BRL",
    "statement_descriptor": "SNEAKERSTORE",

    # Webhook Configuration
    "webhook_secret": os.getenv("PAYMENT_WEBHOOK_SECRET", "change-this-in-production"),

    # Simulation Settings (for SIMULATION mode only)
    "simulation": {
        "card_decline_pattern": "declined",  # Card tokens containing this are rejected
        "gateway_error_pattern": "timeout"  # Card tokens containing this raise a gateway error
    }
}


def get_method_config(method: str) -> Dict[str, Any]:
    """
    Get configuration for a specific payment method.

    Args:
        method: Payment method ("pix", "boleto", "credit_card")

    Returns:
        Method configuration dictionary
    """
    return PAYMENT_CONFIG.get(method, {})


def get_gateway_url() -> str:
    """
    Get the gateway API URL based on the current mode.

    Returns:
        API URL for the gateway
    """
    config = PAYMENT_CONFIG["mercado_pago"]
    if PAYMENT_MODE == "PRODUCTION":
        return config.get("production_url", "")
    else:
        return config.get("sandbox_url", "")
