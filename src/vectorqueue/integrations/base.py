"""Interfaces of the external collaborators the queue talks to."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class EmbeddingResult:
    """Vector returned by the provider and the tokens it billed."""

    vector: list[float]
    tokens: int


@dataclass
class UsageRecord:
    """Billing usage for one embedded task."""

    team_id: str
    tmb_id: str
    tokens: int
    model: str
    bill_id: Optional[str] = None


@dataclass
class Notification:
    """Message addressed to a team member."""

    team_id: str
    tmb_id: str
    title: str
    content: str
    type: str = "system"


class EmbeddingProvider(ABC):
    """Remote text-to-vector model."""

    @abstractmethod
    async def embed(self, text: str, model: str) -> EmbeddingResult:
        """
        Embed a text.

        Raises:
            EmbeddingInvalidRequest: Input rejected by the provider
            EmbeddingRateLimited: Provider throttled the call
            EmbeddingUnavailable: Network or server failure
            EmbeddingError: Anything else the provider reported
        """
        pass


class BalanceService(ABC):
    """Account balance authority."""

    @abstractmethod
    async def check_balance(self, team_id: str) -> None:
        """
        Return normally when the team may spend.

        Raises:
            InsufficientBalance: Team is out of funds
            BillingUnavailable: Balance could not be determined
        """
        pass


class BillingReporter(ABC):
    """Usage sink for billing."""

    @abstractmethod
    async def report_usage(self, usage: UsageRecord) -> None:
        pass


class NotificationService(ABC):
    """Best-effort message delivery to team members."""

    @abstractmethod
    async def notify(self, notification: Notification) -> None:
        pass
