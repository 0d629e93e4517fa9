"""Deal evaluation engine: runs the calculator chain for one deal."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Sequence

from .allocation import AllocationPlanner
from .assumptions import AssumptionResolver, OverrideValidationError, normalize_hs_code
from .compliance import ComplianceChecker
from .defaults import AssumptionDefaults, marketplace_currency
from .demand import DemandEstimator
from .fees import ChannelDataError, FeeCalculator
from .fx import fallback_quote, identity_quote
from .landed_cost import LandedCostCalculator
from .margin import MarginEvaluator
from .models import (
    AssumptionSet,
    ChannelEvaluation,
    ChannelType,
    ConfidenceLevel,
    DataSource,
    DealEvaluation,
    DealRequest,
    FxQuote,
    FxSource,
    LandedCost,
    MarketSnapshot,
)
from .negotiation import NegotiationAdvisor, cheaper_regions
from .scoring import DealScorer

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
PRIMARY_CHANNELS = (ChannelType.AMAZON, ChannelType.EBAY)


class InvalidDealRequestError(ValueError):
    """Raised when the purchase terms are invalid."""

    pass


class NoMarketDataError(Exception):
    """Raised when no Amazon or eBay channel has usable market data."""

    pass


class DealEngine:
    """Evaluates a deal across every channel with market data.

    The engine holds no state between calls: the same request, snapshots,
    FX quotes and defaults always produce the same evaluation.
    """

    SLOW_SELL_MONTHS = 6
    PRICE_DELTA_RATIO = 3

    def __init__(self, settings: Settings) -> None:
        """Initialize the deal engine."""
        self.settings = settings
        self.margin_evaluator = MarginEvaluator()
        self.demand_estimator = DemandEstimator()
        self.scorer = DealScorer(settings)
        self.allocation_planner = AllocationPlanner(settings)
        self.negotiation_advisor = NegotiationAdvisor(settings)
        self.compliance_checker = ComplianceChecker()

    def validate(self, request: DealRequest) -> None:
        """Validate purchase terms, raising InvalidDealRequestError."""
        if not request.ean or not str(request.ean).strip():
            raise InvalidDealRequestError("ean is required")
        if isinstance(request.quantity, bool) or not isinstance(request.quantity, int):
            raise InvalidDealRequestError(f"quantity must be an integer, got {request.quantity!r}")
        if request.quantity <= 0:
            raise InvalidDealRequestError(f"quantity must be positive, got {request.quantity}")
        if not isinstance(request.buy_price, Decimal) or request.buy_price <= 0:
            raise InvalidDealRequestError(f"buy_price must be positive, got {request.buy_price}")
        if not CURRENCY_PATTERN.match(request.currency):
            raise InvalidDealRequestError(f"Invalid currency code: {request.currency!r}")
        if not request.supplier_region:
            raise InvalidDealRequestError("supplier_region is required")
        if request.weight_kg is not None and request.weight_kg <= 0:
            raise InvalidDealRequestError(f"weight_kg must be positive, got {request.weight_kg}")
        if request.hs_code:
            try:
                normalize_hs_code(request.hs_code)
            except OverrideValidationError as e:
                raise InvalidDealRequestError(str(e)) from e
        for marketplace, price in request.listing_prices.items():
            if price <= 0:
                raise InvalidDealRequestError(f"listing price for {marketplace} must be positive")

    def prepare_snapshots(
        self, request: DealRequest, snapshots: Iterable[MarketSnapshot]
    ) -> tuple[list[MarketSnapshot], list[str]]:
        """Apply listing prices, drop unusable snapshots and deduplicate by channel key."""
        warnings: list[str] = []
        prepared: list[MarketSnapshot] = []
        seen: set[str] = set()
        priced: set[str] = set()

        for snapshot in snapshots:
            if snapshot.key in seen:
                warnings.append(f"Duplicate data for {snapshot.key} ignored")
                continue
            seen.add(snapshot.key)

            if snapshot.channel == ChannelType.AMAZON and snapshot.marketplace in request.listing_prices:
                snapshot = replace(snapshot, sell_price=request.listing_prices[snapshot.marketplace])
                priced.add(snapshot.marketplace)

            if snapshot.sell_price is None or snapshot.sell_price <= 0:
                logger.warning(f"Excluding {snapshot.key}: no usable price")
                warnings.append(f"Excluded {snapshot.key}: no usable price")
                continue
            prepared.append(snapshot)

        # Listing prices for marketplaces without Amazon data become estimated channels
        for marketplace, price in sorted(request.listing_prices.items()):
            key = f"{ChannelType.AMAZON.value}-{marketplace}"
            if marketplace in priced or key in seen:
                continue
            prepared.append(
                MarketSnapshot(
                    channel=ChannelType.AMAZON,
                    marketplace=marketplace,
                    sell_price=price,
                    currency=marketplace_currency(marketplace),
                    data_source=DataSource.ESTIMATED,
                )
            )

        return prepared, warnings

    def find_quote(
        self, quotes: Sequence[FxQuote], from_currency: str, to_currency: str
    ) -> FxQuote:
        """Find the supplied quote for a currency pair, or fall back to the table."""
        if from_currency == to_currency:
            return identity_quote(from_currency)
        for quote in quotes:
            if quote.from_currency == from_currency and quote.to_currency == to_currency:
                return quote
        try:
            return fallback_quote(from_currency, to_currency)
        except KeyError as e:
            raise ChannelDataError(f"No exchange rate for {from_currency}->{to_currency}") from e

    def risk_flags(
        self, evaluation: ChannelEvaluation, snapshot: MarketSnapshot
    ) -> tuple[str, ...]:
        """Collect risk flags for one channel."""
        flags: list[str] = []
        if evaluation.margin_percent < 0:
            flags.append("Negative margin")
        elif evaluation.margin_percent < self.margin_evaluator.SELL_MARGIN:
            flags.append("Thin margin")
        if snapshot.data_source == DataSource.MOCK:
            flags.append("Mock data")
        elif snapshot.data_source == DataSource.ESTIMATED:
            flags.append("Estimated price")
        if evaluation.fx_source == FxSource.FALLBACK:
            flags.append("FX fallback rate")
        if evaluation.demand.confidence == ConfidenceLevel.LOW:
            flags.append("Low demand confidence")
        if evaluation.months_to_sell > self.SLOW_SELL_MONTHS:
            flags.append(f"Slow sell-through (>{self.SLOW_SELL_MONTHS} months)")
        if evaluation.margin_drivers:
            flags.append(f"High margin guardrail: {', '.join(evaluation.margin_drivers)}")
        return tuple(flags)

    def margin_drivers(
        self,
        request: DealRequest,
        snapshot: MarketSnapshot,
        landed_cost: LandedCost,
        fx_rate: Decimal,
        overridden_fields: frozenset[str] = frozenset(),
    ) -> tuple[str, ...]:
        """List what may be inflating an unusually high margin."""
        drivers: list[str] = []
        if snapshot.data_source == DataSource.MOCK:
            drivers.append("Mock pricing")
        if request.reclaim_vat:
            drivers.append("VAT reclaim")
        route = f"{landed_cost.origin}-{landed_cost.destination}"
        if any(f.startswith((f"shipping.{route}.", f"duty.{route}.")) for f in overridden_fields):
            drivers.append("Manual assumptions")
        if fx_rate > 0 and snapshot.sell_price / fx_rate > request.buy_price * self.PRICE_DELTA_RATIO:
            drivers.append(f"High price delta (>{self.PRICE_DELTA_RATIO}x buy price)")
        return tuple(drivers)

    def evaluate_channel(
        self,
        request: DealRequest,
        snapshot: MarketSnapshot,
        fee_calculator: FeeCalculator,
        landed_cost: LandedCost,
        quote: FxQuote,
        overridden_fields: frozenset[str] = frozenset(),
    ) -> ChannelEvaluation:
        """Evaluate fees, margin and demand for one channel."""
        fees = fee_calculator.calculate(
            snapshot,
            product_category=request.product_category,
            weight_kg=request.weight_kg,
            reclaim_vat=request.reclaim_vat,
        )
        partner = None
        if snapshot.channel in (ChannelType.RETAILER, ChannelType.DISTRIBUTOR):
            partner = fee_calculator.get_partner(snapshot)

        margin = self.margin_evaluator.evaluate(fees.net_proceeds, landed_cost.total, quote.rate)
        demand = self.demand_estimator.estimate(snapshot, request.product_category, partner)
        capacity = demand.absorption_capacity_per_month
        months = request.quantity / capacity if capacity > 0 else math.inf
        drivers: tuple[str, ...] = ()
        if margin.margin_percent > self.settings.thresholds.guardrail_margin:
            drivers = self.margin_drivers(
                request, snapshot, landed_cost, quote.rate, overridden_fields
            )

        evaluation = ChannelEvaluation(
            channel=snapshot.channel,
            marketplace=snapshot.marketplace,
            partner=snapshot.partner,
            key=snapshot.key,
            sell_price=fees.sell_price,
            fees=fees,
            vat=fees.vat_deducted,
            net_proceeds=fees.net_proceeds,
            landed_cost=landed_cost,
            landed_cost_converted=margin.landed_cost_converted,
            fx_rate=quote.rate,
            fx_source=quote.source,
            net_margin=margin.net_margin,
            margin_percent=margin.margin_percent,
            recommendation=margin.recommendation,
            demand=demand,
            months_to_sell=months,
            currency=fees.currency,
            minimum_order=partner.minimum_order if partner else 0,
            data_source=snapshot.data_source,
            margin_drivers=drivers,
        )
        return replace(evaluation, risk_flags=self.risk_flags(evaluation, snapshot))

    def evaluate(
        self,
        request: DealRequest,
        snapshots: Iterable[MarketSnapshot],
        fx_quotes: Iterable[FxQuote] | None = None,
        defaults: AssumptionDefaults | None = None,
    ) -> DealEvaluation:
        """Evaluate a deal.

        Raises:
            InvalidDealRequestError: If the purchase terms are invalid.
            OverrideValidationError: If an assumption override is malformed.
            NoMarketDataError: If no Amazon or eBay channel has usable data.
        """
        self.validate(request)
        prepared, warnings = self.prepare_snapshots(request, snapshots)
        if not any(s.channel in PRIMARY_CHANNELS for s in prepared):
            raise NoMarketDataError(f"No Amazon or eBay market data for {request.ean}")

        destinations = sorted({s.marketplace for s in prepared})
        assumptions = AssumptionResolver(defaults).resolve(
            request.assumption_overrides, request.supplier_region, destinations
        )
        warnings.extend(f"{r.field}: {r.note}" for r in assumptions.audit if r.note)

        channels = self._evaluate_channels(request, prepared, assumptions, list(fx_quotes or ()), warnings)
        if not any(c.channel in PRIMARY_CHANNELS for c in channels):
            raise NoMarketDataError(f"No Amazon or eBay channel could be evaluated for {request.ean}")

        best = sorted(channels, key=lambda c: (-c.margin_percent, c.key))[0]
        score = self.scorer.score(request.quantity, channels, best)
        decision = self.scorer.decide(
            score.overall, best.margin_percent, bool(cheaper_regions(request.supplier_region))
        )
        allocation = self.allocation_planner.plan(request.quantity, channels)
        negotiation = self.negotiation_advisor.advise(
            decision, best, request.buy_price, request.currency
        )
        sourcing, supplier_types = self.negotiation_advisor.sourcing(
            decision, request.supplier_region
        )
        compliance = self.compliance_checker.check(
            request.brand, request.title, request.product_category
        )

        logger.info(
            f"Evaluated {request.ean} x{request.quantity}: {decision.value} "
            f"(score {score.overall}, best {best.key} at {best.margin_percent}%)"
        )

        return DealEvaluation(
            ean=request.ean,
            quantity=request.quantity,
            deal_score=score,
            decision=decision,
            explanation=self.scorer.explain(decision, score, best, request.quantity),
            best_channel=best,
            channel_analysis=tuple(channels),
            allocation=allocation,
            assumptions_version=assumptions.version,
            overridden_fields=assumptions.overridden_fields,
            negotiation=negotiation,
            sourcing_suggestions=sourcing,
            supplier_suggestions=supplier_types,
            fx_fallback_used=any(c.fx_source == FxSource.FALLBACK for c in channels),
            warnings=tuple(warnings),
            compliance=compliance,
            assumption_audit=assumptions.audit,
        )

    def _evaluate_channels(
        self,
        request: DealRequest,
        snapshots: Sequence[MarketSnapshot],
        assumptions: AssumptionSet,
        quotes: Sequence[FxQuote],
        warnings: list[str],
    ) -> list[ChannelEvaluation]:
        fee_calculator = FeeCalculator(assumptions)
        landed_calculator = LandedCostCalculator(assumptions)
        landed_costs: dict[str, LandedCost] = {}
        channels: list[ChannelEvaluation] = []

        for snapshot in snapshots:
            if snapshot.marketplace not in landed_costs:
                landed_costs[snapshot.marketplace] = landed_calculator.calculate(
                    request, snapshot.marketplace
                )
            try:
                currency = (snapshot.currency or marketplace_currency(snapshot.marketplace)).upper()
                quote = self.find_quote(quotes, request.currency, currency)
                channels.append(
                    self.evaluate_channel(
                        request,
                        snapshot,
                        fee_calculator,
                        landed_costs[snapshot.marketplace],
                        quote,
                        assumptions.overridden_fields,
                    )
                )
            except ChannelDataError as e:
                logger.warning(f"Excluding {snapshot.key}: {e}")
                warnings.append(f"Excluded {snapshot.key}: {e}")
        return channels
