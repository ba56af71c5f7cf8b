from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Generic, TypeVar

import httpx

from app.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

KOBO_PER_NAIRA = Decimal("100")
TWOPLACES = Decimal("0.01")


def to_minor_units(amount) -> int:
    """Major units (naira) to the integer minor units (kobo) the provider expects."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * KOBO_PER_NAIRA).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(minor) -> Decimal:
    value = minor if isinstance(minor, Decimal) else Decimal(str(minor))
    return (value / KOBO_PER_NAIRA).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GatewayResult(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: T) -> "GatewayResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "GatewayResult[T]":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class VirtualAccount:
    account_number: str
    account_name: str
    bank_name: str
    provider_account_id: str


@dataclass(frozen=True)
class InitializedPayment:
    authorization_url: str
    access_code: str | None
    reference: str


@dataclass(frozen=True)
class VerifiedPayment:
    status: str
    amount: Decimal
    paid_at: str | None
    channel: str | None
    metadata: Any
    raw: dict[str, Any]


class PaystackClient:
    """Request/response wrapper around the Paystack REST API.

    Every call returns a GatewayResult; transport failures, timeouts and
    non-2xx responses are reported through ``error`` instead of raising.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key if secret_key is not None else settings.paystack_secret_key
        self.base_url = (base_url or settings.paystack_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.paystack_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        default_error: str,
        json: dict[str, Any] | None = None,
    ) -> GatewayResult[dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException:
            logger.warning("Paystack %s %s timed out", method, path)
            return GatewayResult.fail("Payment provider timed out")
        except httpx.HTTPError as exc:
            logger.error("Paystack %s %s failed: %s", method, path, exc)
            return GatewayResult.fail(default_error)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or body.get("status") is False:
            message = body.get("message") or default_error
            logger.error(
                "Paystack %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            return GatewayResult.fail(message)

        data = body.get("data")
        if not isinstance(data, dict):
            return GatewayResult.fail(default_error)
        return GatewayResult.ok(data)

    async def create_virtual_account(
        self,
        email: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
    ) -> GatewayResult[VirtualAccount]:
        payload: dict[str, Any] = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "preferred_bank": settings.paystack_preferred_bank,
        }
        if phone:
            payload["phone"] = phone
        result = await self._request(
            "POST",
            "/dedicated_account",
            json=payload,
            default_error="Failed to create virtual account",
        )
        if not result.success:
            return GatewayResult.fail(result.error or "Failed to create virtual account")
        data = result.data or {}
        bank = data.get("bank") or {}
        try:
            account = VirtualAccount(
                account_number=str(data["account_number"]),
                account_name=str(data["account_name"]),
                bank_name=str(bank.get("name") or ""),
                provider_account_id=str(data["id"]),
            )
        except KeyError:
            return GatewayResult.fail("Unexpected virtual account response")
        return GatewayResult.ok(account)

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        reference: str,
        metadata: dict[str, Any] | None = None,
    ) -> GatewayResult[InitializedPayment]:
        if amount_minor <= 0:
            return GatewayResult.fail("Amount must be positive")
        payload: dict[str, Any] = {
            "email": email,
            "amount": amount_minor,
            "reference": reference,
            "callback_url": f"{settings.public_base_url.rstrip('/')}/api/paystack/callback",
        }
        if metadata is not None:
            payload["metadata"] = metadata
        result = await self._request(
            "POST",
            "/transaction/initialize",
            json=payload,
            default_error="Failed to initialize transaction",
        )
        if not result.success:
            return GatewayResult.fail(result.error or "Failed to initialize transaction")
        data = result.data or {}
        authorization_url = data.get("authorization_url")
        if not authorization_url:
            return GatewayResult.fail("Unexpected initialize response")
        return GatewayResult.ok(
            InitializedPayment(
                authorization_url=authorization_url,
                access_code=data.get("access_code"),
                reference=data.get("reference") or reference,
            )
        )

    async def verify_transaction(self, reference: str) -> GatewayResult[VerifiedPayment]:
        result = await self._request(
            "GET",
            f"/transaction/verify/{reference}",
            default_error="Failed to verify transaction",
        )
        if not result.success:
            return GatewayResult.fail(result.error or "Failed to verify transaction")
        data = result.data or {}
        return GatewayResult.ok(
            VerifiedPayment(
                status=str(data.get("status") or ""),
                amount=to_major_units(data.get("amount") or 0),
                paid_at=data.get("paid_at"),
                channel=data.get("channel"),
                metadata=data.get("metadata"),
                raw=data,
            )
        )


def get_payment_gateway() -> PaystackClient:
    return PaystackClient()
