"""
Client for verifying payment references against the Paystack API,
with retries for timeouts, rate limiting and server errors.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, cast
from urllib.parse import quote, urljoin

import requests
import structlog

from hostel_bookings.config import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY
from hostel_bookings.domain.pricing import CENTS
from hostel_bookings.metrics import gateway_latency, gateway_requests

logger = structlog.get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0
REQUEST_TIMEOUT = 10
VERIFY_ENDPOINT = "transaction/verify"


@dataclass(frozen=True)
class GatewayVerification:
    success: bool
    amount: Decimal
    paid_at: Optional[datetime]
    reference: str
    gateway_reference: Optional[str] = None
    message: Optional[str] = None


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def _parse_paid_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("gateway_paid_at_unparseable", value=value)
        return None


def from_minor_units(amount: Any) -> Decimal:
    """Paystack reports amounts in the currency's minor unit (pesewas/kobo)."""
    return (Decimal(str(amount or 0)) / 100).quantize(CENTS)


class PaystackClient:
    """
    Thin Paystack client exposing verify(reference).

    Only transport failures raise; a reference the gateway does not recognise
    or reports as unsuccessful comes back as GatewayVerification(success=False).
    """

    def __init__(
        self,
        secret_key: str = PAYSTACK_SECRET_KEY,
        base_url: str = PAYSTACK_BASE_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url
        self.session = session or requests.Session()

    def _get(self, endpoint: str) -> requests.Response:
        url = urljoin(self.base_url, endpoint)
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        retries = 0
        res: Optional[requests.Response] = None

        while True:
            try:
                start_time = time.time()
                res = self.session.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
                latency = time.time() - start_time

                gateway_requests.labels(
                    endpoint=VERIFY_ENDPOINT, status_code=str(res.status_code)
                ).inc()
                gateway_latency.labels(endpoint=VERIFY_ENDPOINT).observe(latency)

                if should_retry(res, None):
                    retries += 1
                    if retries > MAX_RETRIES:
                        res.raise_for_status()
                    logger.warning(
                        "gateway_retry",
                        endpoint=VERIFY_ENDPOINT,
                        status_code=res.status_code,
                        attempt=retries,
                    )
                    time.sleep(RETRY_DELAY * retries)
                    continue

                return res

            except requests.RequestException as err:
                retries += 1
                if retries > MAX_RETRIES or not should_retry(res, err):
                    logger.error("gateway_request_failed", endpoint=VERIFY_ENDPOINT, error=str(err))
                    raise
                logger.warning(
                    "gateway_retry", endpoint=VERIFY_ENDPOINT, error=str(err), attempt=retries
                )
                time.sleep(RETRY_DELAY * retries)

    def verify(self, reference: str) -> GatewayVerification:
        """
        Verify a payment reference.

        Args:
            reference (str): Payment reference issued when the payment was initialised.

        Returns:
            GatewayVerification: success is True only when the gateway reports the
            transaction as "success".

        Raises:
            requests.RequestException: If the gateway cannot be reached after all retries.
        """
        res = self._get(f"{VERIFY_ENDPOINT}/{quote(reference, safe='')}")

        if res.status_code in (400, 404):
            logger.info(
                "gateway_reference_unknown", reference=reference, status_code=res.status_code
            )
            return GatewayVerification(
                success=False,
                amount=Decimal("0"),
                paid_at=None,
                reference=reference,
                message=f"Gateway returned {res.status_code}",
            )

        res.raise_for_status()
        body = cast(Dict[str, Any], res.json())
        data = body.get("data") or {}

        success = bool(body.get("status")) and data.get("status") == "success"
        verification = GatewayVerification(
            success=success,
            amount=from_minor_units(data.get("amount")),
            paid_at=_parse_paid_at(data.get("paid_at") or data.get("paidAt")),
            reference=data.get("reference") or reference,
            gateway_reference=str(data["id"]) if data.get("id") is not None else None,
            message=data.get("gateway_response") or body.get("message"),
        )
        logger.info(
            "gateway_verified",
            reference=reference,
            success=verification.success,
            amount=str(verification.amount),
        )
        return verification
