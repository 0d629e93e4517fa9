"""Deal evaluation service: fetches market data concurrently, then runs the engine."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, TypeVar

from dealengine.api.fx import FxRateProvider
from dealengine.api.market_data import MarketDataProvider
from dealengine.core.config import Settings
from dealengine.core.defaults import AssumptionDefaults, marketplace_currency
from dealengine.core.engine import DealEngine
from dealengine.core.models import ChannelType, DealEvaluation, DealRequest, FxQuote, MarketSnapshot
from dealengine.db.repository import Repository
from dealengine.utils.serialization import serialize_evaluation

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchTarget:
    """One (channel, marketplace, partner) market data request."""

    channel: ChannelType
    marketplace: str
    partner: str = ""

    @property
    def key(self) -> str:
        return f"{self.partner or self.channel.value}-{self.marketplace}"


class DealEvaluationService:
    """Runs a full evaluation: market data and FX fetches, engine, optional save.

    A failed, slow or empty fetch only removes that channel (or falls back to
    table FX rates); the evaluation continues with whatever data arrived.
    """

    PARTNER_MARKETPLACE = "US"

    def __init__(
        self,
        settings: Settings,
        market_data: MarketDataProvider,
        fx_provider: FxRateProvider,
        repository: Repository | None = None,
        defaults: AssumptionDefaults | None = None,
    ) -> None:
        """Initialize the service with its collaborators."""
        self.settings = settings
        self.market_data = market_data
        self.fx_provider = fx_provider
        self.repository = repository
        self.defaults = defaults
        self.engine = DealEngine(settings)

    def targets(self) -> list[FetchTarget]:
        """List every channel to fetch, in a stable order."""
        config = self.settings.service
        targets = [
            FetchTarget(channel, marketplace.upper())
            for marketplace in config.destinations
            for channel in (ChannelType.AMAZON, ChannelType.EBAY)
        ]
        targets += [
            FetchTarget(ChannelType.RETAILER, self.PARTNER_MARKETPLACE, name) for name in config.retailers
        ]
        targets += [
            FetchTarget(ChannelType.DISTRIBUTOR, self.PARTNER_MARKETPLACE, name)
            for name in config.distributors
        ]
        return targets

    def _run_all(self, label: str, tasks: dict[str, Callable[[], T]]) -> dict[str, T]:
        """Run tasks concurrently, dropping any that fail, time out or return None."""
        timeout = self.settings.service.fetch_timeout_seconds
        results: dict[str, T] = {}
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.settings.service.max_workers, len(tasks))),
            thread_name_prefix=f"deal-{label}",
        )
        try:
            futures: dict[str, Future] = {key: executor.submit(task) for key, task in tasks.items()}
            deadline = time.monotonic() + timeout
            for key, future in futures.items():
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    result = future.result(timeout=remaining)
                except FutureTimeoutError:
                    logger.warning(f"{label} fetch for {key} timed out after {timeout}s")
                    future.cancel()
                    continue
                except Exception as e:
                    logger.warning(f"{label} fetch for {key} failed: {e}")
                    continue
                if result is None:
                    logger.warning(f"{label} fetch for {key} returned no data")
                    continue
                results[key] = result
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def fetch_snapshots(self, ean: str) -> list[MarketSnapshot]:
        """Fetch every channel's snapshot concurrently."""
        targets = self.targets()
        tasks = {
            t.key: (lambda t=t: self.market_data.fetch(ean, t.channel, t.marketplace, t.partner))
            for t in targets
        }
        results = self._run_all("market", tasks)
        # Engine input order follows the target list, not completion order
        return [results[t.key] for t in targets if t.key in results]

    def fetch_fx_quotes(self, base_currency: str, snapshots: list[MarketSnapshot]) -> list[FxQuote]:
        """Fetch a quote for each channel currency that differs from the buy currency."""
        currencies = sorted(
            {
                (s.currency or marketplace_currency(s.marketplace)).upper()
                for s in snapshots
            }
            - {base_currency.upper()}
        )
        tasks = {
            currency: (lambda c=currency: self.fx_provider.rate(base_currency, c))
            for currency in currencies
        }
        results = self._run_all("fx", tasks)
        return [results[c] for c in currencies if c in results]

    def evaluate(
        self, request: DealRequest, save: bool = False, deal_id: str = ""
    ) -> DealEvaluation:
        """Fetch data and evaluate a deal, optionally persisting the result.

        Raises:
            InvalidDealRequestError: If the purchase terms are invalid.
            OverrideValidationError: If an assumption override is malformed.
            NoMarketDataError: If no Amazon or eBay data could be fetched.
        """
        self.engine.validate(request)
        snapshots = self.fetch_snapshots(request.ean)
        quotes = self.fetch_fx_quotes(request.currency, snapshots)
        evaluation = self.engine.evaluate(request, snapshots, quotes, self.defaults)

        if save and self.repository is not None:
            deal_id = deal_id or request.ean
            evaluation_id = self.repository.save_evaluation(serialize_evaluation(evaluation), deal_id)
            if request.assumption_overrides:
                self.repository.save_override_set(deal_id, dict(request.assumption_overrides))
            logger.info(f"Saved evaluation {evaluation_id} for {deal_id}")
        return evaluation
