"""Balance and usage clients for the billing service."""

import logging
from dataclasses import asdict
from typing import Optional

import httpx

from vectorqueue.config import settings
from vectorqueue.engine.errors import BillingUnavailable, InsufficientBalance
from vectorqueue.integrations.base import BalanceService, BillingReporter, UsageRecord

logger = logging.getLogger(__name__)


class _BillingHTTP:
    """Shared plumbing for billing endpoints."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        endpoint = endpoint if endpoint is not None else settings.billing_endpoint
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.auth_token = auth_token if auth_token is not None else settings.billing_auth_token
        self.timeout = timeout_seconds or settings.billing_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)


class HTTPBalanceService(_BillingHTTP, BalanceService):
    """
    Asks ``GET {endpoint}/teams/{team_id}/balance``.

    200 means the team may spend, 402 means it is out of funds. Anything else,
    including transport errors, is reported as unavailable. Without a
    configured endpoint every team may spend.
    """

    async def check_balance(self, team_id: str) -> None:
        if not self.endpoint:
            return

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.endpoint}/teams/{team_id}/balance",
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise BillingUnavailable(f"Balance check failed: {e}") from e

        if response.status_code == 402:
            raise InsufficientBalance(team_id)
        if response.status_code != 200:
            raise BillingUnavailable(
                f"Balance check returned {response.status_code}: {response.text}"
            )

        body = response.json()
        if isinstance(body, dict) and body.get("sufficient") is False:
            raise InsufficientBalance(team_id)


class HTTPBillingReporter(_BillingHTTP, BillingReporter):
    """Posts usage to ``POST {endpoint}/usage``; logs only when unconfigured."""

    async def report_usage(self, usage: UsageRecord) -> None:
        if not self.endpoint:
            logger.info(
                "Billing endpoint not configured, usage not reported",
                extra={"team_id": usage.team_id, "tokens": usage.tokens, "model": usage.model},
            )
            return

        payload = {"source": "vector_training", **asdict(usage)}
        async with self._client() as client:
            response = await client.post(
                f"{self.endpoint}/usage",
                json=payload,
                headers=self._headers(),
            )
            response.raise_for_status()
