"""
Client for Razorpay orders and payment signature checks, built on the razorpay SDK
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import razorpay
import requests
from fastapi import Depends
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from app.config import Settings, get_settings
from app.utils.error_handler import GatewayTimeoutError, GatewayUnavailableError

logger = logging.getLogger(__name__)


def to_minor_units(amount) -> int:
    """Convert a rupee amount to paise, rounding half-up"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: str = "created"


class RazorpayClient:
    """
    Wrapper over the Razorpay SDK client.

    Failures are raised as GatewayUnavailableError / GatewayTimeoutError and
    never retried here; retry policy belongs to the caller.
    """

    def __init__(self, key_id: str, key_secret: str, base_url: str = "https://api.razorpay.com",
                 timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.key_id = key_id
        self.timeout = timeout
        self.client = razorpay.Client(session=session, auth=(key_id, key_secret), base_url=base_url.rstrip("/"))
        logger.info(f"RazorpayClient initialized with base_url: {self.client.base_url}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayClient":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_base_url,
            timeout=settings.gateway_timeout_seconds,
        )

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewayOrder:
        """
        Create a payment order

        Args:
            amount_minor: Amount in the currency's smallest unit (paise for INR)
            currency: ISO currency code
            receipt: Merchant receipt reference

        Returns:
            GatewayOrder with the gateway-issued order id
        """
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt}

        try:
            logger.info(f"Creating Razorpay order for receipt {receipt} with amount {amount_minor} {currency}")
            data = self.client.order.create(data=payload, timeout=self.timeout)

        except requests.exceptions.Timeout as e:
            logger.error(f"Timed out creating Razorpay order for receipt {receipt}: {e}")
            raise GatewayTimeoutError("Payment gateway timed out", e)
        except (BadRequestError, GatewayError, ServerError) as e:
            logger.error(f"Razorpay rejected order for receipt {receipt}: {type(e).__name__}: {e}")
            raise GatewayUnavailableError("Payment gateway unavailable", e)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error creating Razorpay order: {e}")
            raise GatewayUnavailableError("Payment gateway unavailable", e)
        except ValueError as e:
            logger.error(f"Razorpay returned a non-JSON response: {e}")
            raise GatewayUnavailableError("Malformed response from payment gateway", e)

        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            logger.error(f"No order id in Razorpay response: {data}")
            raise GatewayUnavailableError("Malformed response from payment gateway")

        logger.info(f"Created Razorpay order {order_id}")
        return GatewayOrder(
            id=order_id,
            amount=data.get("amount", amount_minor),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        """Check a checkout callback signature; the SDK compares in constant time"""
        if not order_id or not payment_id or not signature or not signature.isascii():
            return False
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except SignatureVerificationError:
            return False
        return True


def get_gateway_client(settings: Settings = Depends(get_settings)) -> RazorpayClient:
    """Gateway client dependency, built from injected settings"""
    return RazorpayClient.from_settings(settings)
