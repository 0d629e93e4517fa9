"""Tests for the evaluation service."""

import time
from decimal import Decimal

import pytest

from dealengine.api.fx import FxClient, FxRateError
from dealengine.core.engine import NoMarketDataError
from dealengine.core.models import ChannelType, DataSource
from dealengine.service import DealEvaluationService
from dealengine.utils.mock_data import MockMarketDataProvider, local_price, mock_base_price


class FailingProvider(MockMarketDataProvider):
    """Mock provider that raises or stalls for chosen channel keys."""

    def __init__(self, failing=(), slow=(), delay=1.0):
        super().__init__()
        self.failing = set(failing)
        self.slow = set(slow)
        self.delay = delay

    def fetch(self, ean, channel, marketplace, partner=""):
        key = f"{partner or channel.value}-{marketplace}"
        if key in self.failing:
            raise ConnectionError(f"{key} unavailable")
        if key in self.slow:
            time.sleep(self.delay)
        return super().fetch(ean, channel, marketplace, partner)


class BrokenFx:
    """FX provider whose every lookup fails."""

    def rate(self, from_currency, to_currency, as_of=None):
        raise FxRateError("rate service down")


@pytest.fixture
def service(settings):
    """Service over the mock provider and a mock-mode FX client."""
    return DealEvaluationService(settings, MockMarketDataProvider(), FxClient(settings))


class TestMockProvider:
    """Tests for the deterministic mock provider."""

    def test_deterministic(self):
        """Test the same EAN always gives the same snapshot."""
        provider = MockMarketDataProvider()

        assert provider.fetch("123", ChannelType.AMAZON, "UK") == provider.fetch(
            "123", ChannelType.AMAZON, "UK"
        )

    def test_snapshots_are_mock(self):
        """Test mock snapshots are labelled and priced locally."""
        snapshot = MockMarketDataProvider().fetch("123", ChannelType.EBAY, "DE")

        assert snapshot.data_source == DataSource.MOCK
        assert snapshot.currency == "EUR"
        assert snapshot.sell_price <= local_price("123", "DE")

    def test_partners_us_only(self):
        """Test partner data only exists in the US."""
        provider = MockMarketDataProvider()

        assert provider.fetch("123", ChannelType.RETAILER, "UK", "walmart") is None
        assert provider.fetch("123", ChannelType.RETAILER, "US", "walmart").sell_price == mock_base_price("123")
        assert provider.fetch("123", ChannelType.RETAILER, "US", "ingram_micro") is None

    def test_missing_keys(self):
        """Test configured keys return no data."""
        provider = MockMarketDataProvider(missing={"amazon-US"})

        assert provider.fetch("123", ChannelType.AMAZON, "US") is None


class TestDealEvaluationService:
    """Tests for DealEvaluationService."""

    def test_targets(self, service):
        """Test every destination and partner is fetched."""
        keys = [t.key for t in service.targets()]

        assert keys[:2] == ["amazon-US", "ebay-US"]
        assert "walmart-US" in keys
        assert "ingram_micro-US" in keys
        assert len(keys) == 6 * 2 + 4

    def test_fetch_snapshots_in_target_order(self, service):
        """Test snapshots come back in target order."""
        snapshots = service.fetch_snapshots("5012345678900")
        target_keys = [t.key for t in service.targets()]

        assert [s.key for s in snapshots] == [k for k in target_keys if k in {s.key for s in snapshots}]
        assert len(snapshots) == 16

    def test_evaluate(self, service, sample_request):
        """Test a full evaluation over mock data."""
        evaluation = service.evaluate(sample_request)

        assert evaluation.ean == sample_request.ean
        assert len(evaluation.channel_analysis) == 16
        assert evaluation.fx_fallback_used
        assert evaluation.allocation.allocated_quantity + evaluation.allocation.hold == 100
        assert all(c.demand.confidence.value == "Low" for c in evaluation.channel_analysis)

    def test_failed_channel_dropped(self, settings, sample_request):
        """Test a failing fetch only removes that channel."""
        service = DealEvaluationService(
            settings, FailingProvider(failing={"amazon-US", "walmart-US"}), FxClient(settings)
        )
        keys = {c.key for c in service.evaluate(sample_request).channel_analysis}

        assert "amazon-US" not in keys
        assert "walmart-US" not in keys
        assert "ebay-US" in keys

    def test_slow_channel_dropped(self, settings, sample_request):
        """Test a fetch that exceeds the timeout is dropped."""
        settings.service.fetch_timeout_seconds = 0.3
        service = DealEvaluationService(
            settings, FailingProvider(slow={"ebay-UK"}, delay=2.0), FxClient(settings)
        )
        keys = {c.key for c in service.evaluate(sample_request).channel_analysis}

        assert "ebay-UK" not in keys
        assert "amazon-UK" in keys

    def test_all_primary_channels_fail(self, settings, sample_request):
        """Test no Amazon or eBay data raises NoMarketDataError."""
        failing = {
            f"{channel}-{marketplace}"
            for channel in ("amazon", "ebay")
            for marketplace in settings.service.destinations
        }
        service = DealEvaluationService(settings, FailingProvider(failing=failing), FxClient(settings))

        with pytest.raises(NoMarketDataError):
            service.evaluate(sample_request)

    def test_fx_failure_uses_fallback(self, settings, sample_request):
        """Test a failing FX provider falls back to table rates."""
        service = DealEvaluationService(settings, MockMarketDataProvider(), BrokenFx())
        evaluation = service.evaluate(sample_request)

        assert evaluation.fx_fallback_used
        uk = next(c for c in evaluation.channel_analysis if c.key == "amazon-UK")
        assert uk.fx_rate == Decimal("0.800000")

    def test_save(self, settings, sample_request, repository):
        """Test evaluations and overrides are persisted."""
        service = DealEvaluationService(
            settings, MockMarketDataProvider(), FxClient(settings), repository=repository
        )
        request = sample_request
        request.assumption_overrides = {"feeOverrides": {"marketplace": "US", "referralRate": 0.1}}

        evaluation = service.evaluate(request, save=True, deal_id="deal-42")
        stored = repository.list_evaluations(ean=request.ean)

        assert len(stored) == 1
        assert stored[0]["dealId"] == "deal-42"
        assert stored[0]["decision"] == evaluation.decision.value
        assert repository.get_override_set("deal-42") == request.assumption_overrides
