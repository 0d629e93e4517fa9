"""Main entry point for Deal Engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dealengine.api.fx import FxClient
from dealengine.core.assumptions import (
    AssumptionResolver,
    OverrideValidationError,
    describe_assumptions,
)
from dealengine.core.config import get_config_dir, get_settings
from dealengine.core.engine import InvalidDealRequestError, NoMarketDataError
from dealengine.core.models import DealRequest, ShippingMethod
from dealengine.db.repository import Repository
from dealengine.db.session import init_database
from dealengine.service import DealEvaluationService
from dealengine.utils.mock_data import MockMarketDataProvider
from dealengine.utils.serialization import serialize_evaluation

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_NO_MARKET_DATA = 2


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging."""
    log_dir = get_config_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "engine.log"

    # stdout carries the JSON result, so console logs go to stderr
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stderr),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="deal-engine",
        description="Evaluate a wholesale deal across marketplaces, retailers and distributors.",
    )
    parser.add_argument("--ean", required=True, help="Product EAN")
    parser.add_argument("--quantity", required=True, type=int, help="Units to buy")
    parser.add_argument("--buy-price", required=True, help="Unit buy price")
    parser.add_argument("--currency", default="USD", help="Buy-side currency (default USD)")
    parser.add_argument("--supplier-region", default="CN", help="Supplier region (default CN)")
    parser.add_argument("--category", help="Product category, e.g. 'Toys & Games'")
    parser.add_argument("--hs-code", help="HS tariff code")
    parser.add_argument("--brand", help="Product brand, checked for gating")
    parser.add_argument("--title", help="Product title, checked for hazmat keywords")
    parser.add_argument("--weight-kg", help="Unit weight in kg (default 0.5)")
    parser.add_argument(
        "--shipping-method", default="air", choices=ShippingMethod.values(), help="Freight method"
    )
    parser.add_argument("--reclaim-vat", action="store_true", help="Seller reclaims import VAT")
    parser.add_argument("--overrides", type=Path, help="JSON file with assumption overrides")
    parser.add_argument("--save", action="store_true", help="Persist the evaluation")
    parser.add_argument("--mock", action="store_true", help="Use table FX rates instead of the live API")
    parser.add_argument(
        "--show-assumptions",
        action="store_true",
        help="Include every effective assumption and its source in the output",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    if args.mock:
        settings = settings.model_copy(deep=True)
        settings.fx.mock_mode = True

    try:
        overrides = json.loads(args.overrides.read_text(encoding="utf-8")) if args.overrides else None
        request = DealRequest.from_dict(
            {
                "ean": args.ean,
                "quantity": args.quantity,
                "buyPrice": args.buy_price,
                "currency": args.currency,
                "supplierRegion": args.supplier_region,
                "productCategory": args.category,
                "hsCode": args.hs_code,
                "brand": args.brand,
                "title": args.title,
                "weightKg": args.weight_kg,
                "shippingMethod": args.shipping_method,
                "reclaimVat": args.reclaim_vat,
                "assumptionOverrides": overrides,
            }
        )
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID

    repository = None
    if args.save:
        init_database()
        repository = Repository()

    service = DealEvaluationService(
        settings,
        market_data=MockMarketDataProvider(),
        fx_provider=FxClient(settings),
        repository=repository,
    )

    try:
        evaluation = service.evaluate(request, save=args.save)
    except NoMarketDataError as e:
        logger.warning(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NO_MARKET_DATA
    except (InvalidDealRequestError, OverrideValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID

    result = serialize_evaluation(evaluation)
    if args.show_assumptions:
        destinations = sorted({c.marketplace for c in evaluation.channel_analysis})
        assumptions = AssumptionResolver().resolve(
            request.assumption_overrides, request.supplier_region, destinations
        )
        result["assumptions"]["details"] = describe_assumptions(
            assumptions, request.supplier_region, destinations
        )

    print(json.dumps(result, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
