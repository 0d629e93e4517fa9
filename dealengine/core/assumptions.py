"""Assumption resolution: merge caller overrides with versioned defaults."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable, Mapping

from .defaults import AssumptionDefaults, marketplace_currency
from .models import (
    AssumptionSet,
    ChannelType,
    DutyMethod,
    FeeRule,
    OverrideRecord,
    ShippingMethod,
    to_decimal,
)

logger = logging.getLogger(__name__)

HS_CODE_PATTERN = re.compile(r"^\d{6,10}$")


class OverrideValidationError(ValueError):
    """Raised when an assumption override cannot be applied."""

    def __init__(self, message: str, field: str = "", value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


def normalize_overrides(value: Any) -> list[dict[str, Any]]:
    """Normalize a single override object or a list of them into a list."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [dict(value)]
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if not isinstance(item, Mapping):
                raise OverrideValidationError(
                    f"Override entries must be objects, got {type(item).__name__}",
                    value=item,
                )
            items.append(dict(item))
        return items
    raise OverrideValidationError(
        f"Overrides must be an object or a list, got {type(value).__name__}", value=value
    )


def normalize_hs_code(hs_code: Any) -> str:
    """Strip separators from an HS code and validate it has 6-10 digits."""
    cleaned = re.sub(r"[\s.\-]", "", str(hs_code))
    if not HS_CODE_PATTERN.match(cleaned):
        raise OverrideValidationError(
            f"Malformed HS code {hs_code!r}: expected 6-10 digits", field="hsCode", value=hs_code
        )
    return cleaned


def _get(entry: Mapping[str, Any], *names: str) -> Any:
    """Read the first present key (camelCase or snake_case)."""
    for name in names:
        if name in entry and entry[name] is not None and entry[name] != "":
            return entry[name]
    return None


def _fmt(value: Any) -> str | None:
    """Format a value for the audit trail."""
    if value is None:
        return None
    if isinstance(value, (ShippingMethod, DutyMethod, ChannelType)):
        return value.value
    return str(value)


class _OverrideMerge:
    """Per-call merge state: working copies of the rule maps and the audit trail."""

    def __init__(self, base: AssumptionSet, vat_rates: Mapping[str, Decimal]) -> None:
        self.base = base
        self.vat_rates = vat_rates
        self.shipping = {route: dict(rules) for route, rules in base.shipping.items()}
        self.duty = dict(base.duty)
        self.fees = dict(base.fees)
        self.records: list[OverrideRecord] = []
        self.notes: dict[str, str] = {}

    def rate(self, field_key: str, value: Any) -> Decimal:
        """Parse a fractional rate and clamp it into [0, 1]."""
        try:
            rate = to_decimal(value, field_key)
        except ValueError as e:
            raise OverrideValidationError(str(e), field=field_key, value=value) from e
        if rate < 0 or rate > 1:
            clamped = min(max(rate, Decimal("0")), Decimal("1"))
            logger.warning(f"Override {field_key}={rate} outside [0, 1], clamped to {clamped}")
            self.notes[field_key] = f"clamped from {rate}"
            return clamped
        return rate

    def amount(self, field_key: str, value: Any) -> Decimal:
        """Parse a non-negative amount."""
        try:
            amount = to_decimal(value, field_key)
        except ValueError as e:
            raise OverrideValidationError(str(e), field=field_key, value=value) from e
        if amount < 0:
            raise OverrideValidationError(
                f"{field_key} must not be negative, got {amount}", field=field_key, value=value
            )
        return amount

    def record(self, prefix: str, name: str, old: Any, new: Any) -> None:
        """Add an audit record, attaching any clamp note."""
        field_key = f"{prefix}.{name}"
        self.records.append(
            OverrideRecord(
                field=field_key,
                old_value=_fmt(old),
                new_value=_fmt(new),
                note=self.notes.pop(field_key, ""),
            )
        )

    def route(self, kind: str, entry: Mapping[str, Any]) -> tuple[str, str]:
        """Read the (origin, destination) key of a route override."""
        origin = _get(entry, "origin")
        destination = _get(entry, "destination")
        if not origin or not destination:
            raise OverrideValidationError(
                f"{kind} override requires origin and destination",
                field=f"{kind}.route",
                value=dict(entry),
            )
        return str(origin).upper(), str(destination).upper()

    def apply_shipping(self, entry: Mapping[str, Any]) -> None:
        """Replace one route/method shipping rule."""
        route = self.route("shipping", entry)
        method_value = _get(entry, "method", "shippingMethod", "shipping_method") or "air"
        try:
            method = ShippingMethod.from_string(method_value)
        except ValueError as e:
            raise OverrideValidationError(str(e), field="shipping.method", value=method_value) from e

        current, _ = self.base.shipping_rule(route[0], route[1], method)
        current = self.shipping.get(route, {}).get(method, current)
        prefix = f"shipping.{route[0]}-{route[1]}.{method.value}"

        updates: dict[str, Any] = {}
        rate = _get(entry, "ratePerKg", "rate_per_kg")
        if rate is not None:
            updates["rate_per_kg"] = self.amount(f"{prefix}.rate_per_kg", rate)
        min_charge = _get(entry, "minCharge", "min_charge")
        if min_charge is not None:
            updates["min_charge"] = self.amount(f"{prefix}.min_charge", min_charge)
        transit = _get(entry, "transitDays", "transit_days")
        if transit is not None:
            updates["transit_days"] = int(self.amount(f"{prefix}.transit_days", transit))

        if not updates:
            return
        for name, value in updates.items():
            self.record(prefix, name, getattr(current, name), value)
        self.shipping.setdefault(route, {})[method] = replace(current, **updates)

    def apply_duty(self, entry: Mapping[str, Any]) -> None:
        """Replace one route's duty rule."""
        route = self.route("duty", entry)
        current = self.duty.get(route) or self.base.duty_rule(*route)
        prefix = f"duty.{route[0]}-{route[1]}"

        hs_code = _get(entry, "hsCode", "hs_code")
        rate = _get(entry, "rate", "dutyRate", "duty_rate")
        amount = _get(entry, "amount", "dutyAmount", "duty_amount")
        method_value = _get(entry, "calculationMethod", "calculation_method", "method")

        updates: dict[str, Any] = {}
        if hs_code is not None:
            updates["hs_code"] = normalize_hs_code(hs_code)
        if rate is not None:
            updates["rate"] = self.rate(f"{prefix}.rate", rate)
        if amount is not None:
            updates["amount"] = self.amount(f"{prefix}.amount", amount)

        if method_value is not None:
            try:
                method = DutyMethod.from_string(method_value)
            except ValueError as e:
                raise OverrideValidationError(
                    str(e), field=f"{prefix}.method", value=method_value
                ) from e
        elif amount is not None:
            method = DutyMethod.DIRECT
        elif hs_code is not None or rate is not None:
            method = DutyMethod.HSCODE
        else:
            method = current.method

        if method == DutyMethod.DIRECT and updates.get("amount", current.amount) is None:
            raise OverrideValidationError(
                "Direct duty override requires an amount", field=f"{prefix}.amount"
            )
        # A bare rate is inferred as an HS-code rate and needs no code
        if (
            method == DutyMethod.HSCODE
            and method_value is not None
            and updates.get("hs_code", current.hs_code) is None
        ):
            raise OverrideValidationError(
                "HS code duty override requires an hsCode", field=f"{prefix}.hs_code"
            )

        if method != current.method:
            updates["method"] = method
        if not updates:
            return
        for name, value in updates.items():
            self.record(prefix, name, getattr(current, name), value)
        self.duty[route] = replace(current, **updates)

    def apply_fee(self, entry: Mapping[str, Any]) -> None:
        """Replace fields of one marketplace/channel fee schedule."""
        marketplace = _get(entry, "marketplace")
        if not marketplace:
            raise OverrideValidationError(
                "Fee override requires a marketplace", field="fees.marketplace", value=dict(entry)
            )
        marketplace = str(marketplace).upper()
        channel_value = _get(entry, "channel", "channelType", "channel_type") or "amazon"
        try:
            channel = ChannelType.from_string(channel_value)
        except ValueError as e:
            raise OverrideValidationError(str(e), field="fees.channel", value=channel_value) from e

        key = (marketplace, channel)
        current = self.fees.get(key) or FeeRule(
            marketplace=marketplace,
            channel=channel,
            currency=marketplace_currency(marketplace),
            vat_rate=self.vat_rates.get(marketplace, Decimal("0")),
            deduct_vat=channel == ChannelType.AMAZON,
        )
        prefix = f"fees.{marketplace}-{channel.value}"

        updates: dict[str, Any] = {}
        for names, attr, parser in (
            (("referralRate", "referral_rate"), "referral_rate", self.rate),
            (("paymentFee", "payment_fee", "paymentFeeRate"), "payment_fee_rate", self.rate),
            (("vatRate", "vat_rate"), "vat_rate", self.rate),
            (("finalValueRate", "final_value_rate"), "final_value_rate", self.rate),
            (("fbaFee", "fba_fee"), "fba_fee", self.amount),
            (("closingFee", "closing_fee"), "closing_fee", self.amount),
            (("perOrderFee", "per_order_fee"), "per_order_fee", self.amount),
        ):
            value = _get(entry, *names)
            if value is not None:
                updates[attr] = parser(f"{prefix}.{attr}", value)

        version = _get(entry, "feeScheduleVersion", "fee_schedule_version")
        if version is not None and str(version) != current.fee_schedule_version:
            updates["fee_schedule_version"] = str(version)
        if not updates:
            return
        for name, value in updates.items():
            self.record(prefix, name, getattr(current, name), value)
        self.fees[key] = replace(current, **updates)


class AssumptionResolver:
    """Merges override payloads into a fresh AssumptionSet."""

    def __init__(self, defaults: AssumptionDefaults | None = None) -> None:
        """Initialize with the versioned defaults."""
        self.defaults = defaults or AssumptionDefaults()

    def resolve(
        self,
        overrides: Mapping[str, Any] | None,
        supplier_region: str = "CN",
        destinations: Iterable[str] = (),
    ) -> AssumptionSet:
        """Build the effective assumptions for one evaluation.

        Overrides replace only the defaults whose key matches exactly; every
        other route and marketplace keeps the system default.
        """
        base = self.defaults.to_assumption_set()
        if not overrides:
            return base

        merge = _OverrideMerge(base, self.defaults.vat_rates)
        for entry in normalize_overrides(_get(overrides, "shippingOverrides", "shipping_overrides")):
            merge.apply_shipping(entry)
        for entry in normalize_overrides(_get(overrides, "dutyOverrides", "duty_overrides")):
            merge.apply_duty(entry)
        for entry in normalize_overrides(_get(overrides, "feeOverrides", "fee_overrides")):
            merge.apply_fee(entry)

        origin = supplier_region.upper()
        used = {d.upper() for d in destinations}
        for record in merge.records:
            if record.field.startswith(("shipping.", "duty.")):
                route_origin, _, route_dest = record.field.split(".")[1].partition("-")
                if route_origin != origin or (used and route_dest not in used):
                    logger.info(f"Override {record.field} is not on a route used by this deal")

        return replace(
            base,
            shipping=merge.shipping,
            duty=merge.duty,
            fees=merge.fees,
            overridden_fields=frozenset(r.field for r in merge.records),
            audit=tuple(merge.records),
        )


def describe_assumptions(
    assumptions: AssumptionSet, supplier_region: str, destinations: Iterable[str]
) -> dict[str, Any]:
    """Build a visibility report showing each effective value and its source."""
    origin = supplier_region.upper()

    def source(field_key: str) -> str:
        return "override" if assumptions.is_overridden(field_key) else "default"

    shipping = []
    duty = []
    fees = []
    for destination in destinations:
        destination = destination.upper()
        for method in ShippingMethod:
            rule, route_specific = assumptions.shipping_rule(origin, destination, method)
            prefix = f"shipping.{origin}-{destination}.{method.value}"
            shipping.append(
                {
                    "route": f"{origin}-{destination}",
                    "method": method.value,
                    "ratePerKg": str(rule.rate_per_kg),
                    "minCharge": str(rule.min_charge),
                    "transitDays": rule.transit_days,
                    "source": source(f"{prefix}.rate_per_kg")
                    if route_specific
                    else "default (generic route)",
                }
            )
        rule = assumptions.duty_rule(origin, destination)
        prefix = f"duty.{origin}-{destination}"
        duty.append(
            {
                "route": f"{origin}-{destination}",
                "method": rule.method.value,
                "rate": str(rule.rate) if rule.rate is not None else None,
                "amount": str(rule.amount) if rule.amount is not None else None,
                "hsCode": rule.hs_code,
                "defaultRate": str(rule.category_rate("default")),
                "source": "override"
                if any(f.startswith(prefix + ".") for f in assumptions.overridden_fields)
                else "default",
            }
        )
    for (marketplace, channel), rule in sorted(
        assumptions.fees.items(), key=lambda item: (item[0][0], item[0][1].value)
    ):
        prefix = f"fees.{marketplace}-{channel.value}"
        fees.append(
            {
                "marketplace": marketplace,
                "channel": channel.value,
                "referralRate": str(rule.referral_rate) if rule.referral_rate is not None else "category",
                "fbaFee": str(rule.fba_fee) if rule.fba_fee is not None else "size tier",
                "vatRate": str(rule.vat_rate),
                "feeScheduleVersion": rule.fee_schedule_version,
                "source": "override"
                if any(f.startswith(prefix + ".") for f in assumptions.overridden_fields)
                else "default",
            }
        )

    return {
        "version": assumptions.version,
        "effectiveDate": assumptions.effective_date,
        "overriddenFields": sorted(assumptions.overridden_fields),
        "audit": [
            {
                "field": r.field,
                "oldValue": r.old_value,
                "newValue": r.new_value,
                "source": r.source,
                "note": r.note,
            }
            for r in assumptions.audit
        ],
        "shipping": shipping,
        "duty": duty,
        "fees": fees,
    }
