"""Razorpay REST client.

Every call is a single bounded HTTP request; retries are left to the caller.
Responses are validated with pydantic so shape drift fails here instead of
deeper in the order flow.
"""

from time import perf_counter

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from artpay.common.errors import GatewayResponseError, GatewayTimeoutError, GatewayUnavailableError
from artpay.common.logging import logger
from artpay.common.metrics import gateway_latency_seconds

PAID_PAYMENT_STATUSES = {"authorized", "captured"}


class GatewayOrder(BaseModel):
    """Order handle minted by the gateway."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    receipt: str | None = None
    status: str | None = None
    # The API returns an empty list instead of an object when no notes were set.
    notes: dict[str, str] | list = Field(default_factory=dict)

    def note(self, key: str) -> str | None:
        return self.notes.get(key) if isinstance(self.notes, dict) else None


class GatewayPayment(BaseModel):
    """Payment captured (or authorized) against a gateway order."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    amount: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    status: str
    order_id: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_PAYMENT_STATUSES


class RazorpayClient:
    """Thin async wrapper over the orders and payments endpoints."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout_seconds: float = 10.0,
        service_name: str = "artpay-payments",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.service_name = service_name
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> dict:
        start = perf_counter()
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("gateway timeout operation=%s path=%s", operation, path)
            raise GatewayTimeoutError(f"gateway {operation} timed out") from exc
        except httpx.HTTPStatusError as exc:
            # Gateway error bodies can echo request fields; keep them out of responses.
            logger.warning(
                "gateway rejected operation=%s status_code=%s body=%s",
                operation,
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise GatewayUnavailableError(f"gateway {operation} failed with {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("gateway transport error operation=%s: %s", operation, exc)
            raise GatewayUnavailableError(f"gateway {operation} failed") from exc
        except ValueError as exc:
            raise GatewayResponseError(f"gateway {operation} returned non-JSON body") from exc
        finally:
            gateway_latency_seconds.labels(service=self.service_name, operation=operation).observe(
                max(0.0, perf_counter() - start)
            )

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict | None = None) -> GatewayOrder:
        """Mint a gateway order for `amount` minor units."""

        payload = {"amount": amount, "currency": currency, "receipt": receipt}
        if notes:
            payload["notes"] = notes
        data = await self._request("create_order", "POST", "/orders", json=payload)
        return _parse(GatewayOrder, data, "create_order")

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        data = await self._request("fetch_order", "GET", f"/orders/{order_id}")
        return _parse(GatewayOrder, data, "fetch_order")

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        data = await self._request("fetch_payment", "GET", f"/payments/{payment_id}")
        return _parse(GatewayPayment, data, "fetch_payment")

    async def close(self) -> None:
        await self._client.aclose()


def _parse(model, data, operation: str):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("gateway response shape mismatch operation=%s errors=%s", operation, exc.errors())
        raise GatewayResponseError(f"unexpected gateway {operation} response") from exc
