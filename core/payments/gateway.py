"""Payment gateway client (Razorpay REST API) with connection reuse and retry logic."""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception,
    before_sleep_log,
    RetryError,
)

from core.config_loader import GatewayConfig
from core.exceptions import GatewayUnreachable

logger = logging.getLogger(__name__)

MAX_RECEIPT_LENGTH = 40


class OrderStatus:
    CREATED = 'created'
    ATTEMPTED = 'attempted'
    PAID = 'paid'


@dataclass
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str
    status: str = OrderStatus.CREATED
    receipt: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GatewayOrder":
        return cls(
            order_id=data['id'],
            amount_minor=int(data.get('amount', 0)),
            currency=data.get('currency', ''),
            status=data.get('status', OrderStatus.CREATED),
            receipt=data.get('receipt'),
            raw=data,
        )


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def _is_retryable_error(exc: Exception) -> bool:
    """
    Retry timeouts, connection errors and 5xx. Never retry 4xx.
    """
    if isinstance(exc, requests.Timeout):
        return True

    if isinstance(exc, requests.RequestException):
        response = getattr(exc, 'response', None)
        if response is not None:
            return response.status_code >= 500
        return True

    return False


class PaymentGateway(ABC):
    @abstractmethod
    def create_order(self, amount_minor: int, receipt: str) -> GatewayOrder:
        pass

    @abstractmethod
    def fetch_order(self, order_id: str) -> Optional[GatewayOrder]:
        """Authoritative order state, or None when the gateway does not know the order."""
        pass

    @abstractmethod
    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        pass

    @abstractmethod
    def verify_webhook(self, raw_body: bytes, signature: str) -> bool:
        pass


class RazorpayGateway(PaymentGateway):
    """
    Razorpay orders API over a shared requests.Session.

    Transient failures are retried; exhausted retries raise GatewayUnreachable.
    """

    def __init__(self, config: GatewayConfig):
        self.base_url = config.base_url.rstrip('/')
        self.currency = config.currency
        self.request_timeout_seconds = config.request_timeout_seconds
        self.key_secret = config.key_secret
        self.webhook_secret = config.webhook_secret

        self.session = requests.Session()
        if config.key_id and config.key_secret:
            self.session.auth = (config.key_id, config.key_secret)
        else:
            logger.warning("Razorpay credentials not configured; gateway calls will be rejected")

        logger.info(f"RazorpayGateway initialized: base_url={self.base_url}, currency={self.currency}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(2),
        retry=retry_if_exception(_is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            timeout=self.request_timeout_seconds,
            **kwargs
        )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self._request(method, path, **kwargs)
        except (requests.RequestException, RetryError) as e:
            raise GatewayUnreachable(f"{method} {path} failed: {e}") from e

    def create_order(self, amount_minor: int, receipt: str) -> GatewayOrder:
        payload = {
            'amount': amount_minor,
            'currency': self.currency,
            'receipt': receipt[:MAX_RECEIPT_LENGTH],
        }
        response = self._call('POST', '/orders', json=payload)
        if response.status_code >= 400:
            logger.error(f"Order creation rejected ({response.status_code}): {response.text}")
            raise GatewayUnreachable(f"Order creation rejected with status {response.status_code}")

        order = GatewayOrder.from_api(response.json())
        logger.info(f"Created gateway order {order.order_id} for {amount_minor} {self.currency} minor units")
        return order

    def fetch_order(self, order_id: str) -> Optional[GatewayOrder]:
        response = self._call('GET', f'/orders/{order_id}')
        if response.status_code == 404:
            logger.warning(f"Gateway does not know order {order_id}")
            return None
        if response.status_code >= 400:
            raise GatewayUnreachable(f"Order lookup for {order_id} rejected with status {response.status_code}")
        return GatewayOrder.from_api(response.json())

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret or not signature:
            return False
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}".encode('utf-8'))
        return hmac.compare_digest(expected, signature)

    def verify_webhook(self, raw_body: bytes, signature: str) -> bool:
        if not self.webhook_secret:
            logger.error("Webhook secret not configured")
            return False
        if not signature:
            return False
        expected = hmac_sha256_hex(self.webhook_secret, raw_body)
        return hmac.compare_digest(expected, signature)
