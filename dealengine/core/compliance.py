"""Selling restriction checks for Deal Engine.

Flags gated brands, brands enrolled in the Transparency program, categories
that need approval and titles that suggest hazmat classification. The brand
lists are not exhaustive; marketplaces change them regularly.
"""

from __future__ import annotations

import re

from .models import ComplianceFlag, ComplianceReport, ComplianceSeverity

HIGH = ComplianceSeverity.HIGH
MEDIUM = ComplianceSeverity.MEDIUM
LOW = ComplianceSeverity.LOW

# Brands that need approval or distributor invoices
GATED_BRANDS: dict[str, ComplianceSeverity] = {
    # Gaming & Electronics
    "nintendo": HIGH,
    "sony": HIGH,
    "playstation": HIGH,
    "xbox": MEDIUM,
    "microsoft": MEDIUM,
    "apple": HIGH,
    "samsung": MEDIUM,
    "bose": HIGH,
    "beats": HIGH,
    "gopro": HIGH,
    # Toys & Games
    "lego": HIGH,
    "hasbro": MEDIUM,
    "mattel": MEDIUM,
    "barbie": MEDIUM,
    "hot wheels": MEDIUM,
    "nerf": MEDIUM,
    "pokemon": HIGH,
    "funko": MEDIUM,
    # Fashion & Apparel
    "nike": HIGH,
    "adidas": HIGH,
    "under armour": HIGH,
    "puma": MEDIUM,
    "new balance": MEDIUM,
    "reebok": MEDIUM,
    "north face": HIGH,
    "patagonia": HIGH,
    # Beauty & Personal Care
    "loreal": MEDIUM,
    "maybelline": MEDIUM,
    "olay": MEDIUM,
    "neutrogena": MEDIUM,
    "dove": LOW,
    # Home & Kitchen
    "dyson": HIGH,
    "kitchenaid": MEDIUM,
    "instant pot": MEDIUM,
    "vitamix": HIGH,
    "yeti": HIGH,
    # Sports & Outdoors
    "callaway": MEDIUM,
    "titleist": MEDIUM,
    "taylormade": MEDIUM,
    "wilson": LOW,
    # Health & Supplements
    "ensure": MEDIUM,
    "centrum": MEDIUM,
    "nature made": LOW,
}

# Every unit needs a Transparency code from the brand owner
TRANSPARENCY_BRANDS = (
    "bose",
    "beats",
    "gopro",
    "anker",
    "otterbox",
    "spigen",
    "belkin",
    "logitech",
    "razer",
    "corsair",
)

# Category -> (approval difficulty, notes)
RESTRICTED_CATEGORIES: dict[str, tuple[ComplianceSeverity, str]] = {
    "Grocery & Gourmet Food": (MEDIUM, "Requires FDA compliance for food items"),
    "Health & Personal Care": (MEDIUM, "May require FDA registration"),
    "Beauty": (LOW, "Some subcategories restricted"),
    "Jewelry": (HIGH, "Requires professional seller account"),
    "Watches": (HIGH, "High-value items require approval"),
    "Fine Art": (HIGH, "By invitation only"),
    "Collectible Coins": (HIGH, "Strict authentication requirements"),
}

HAZMAT_KEYWORDS = (
    "battery",
    "lithium",
    "aerosol",
    "spray",
    "flammable",
    "pressurized",
    "alcohol",
    "nail polish",
    "perfume",
    "cologne",
    "sanitizer",
    "bleach",
    "ammonia",
    "lighter",
    "matches",
)


def _normalize(text: str) -> str:
    return " ".join(text.lower().replace("'", "").split())


def _contains_name(text: str, name: str) -> bool:
    """Whether a brand name appears in the text as whole words."""
    return re.search(rf"\b{re.escape(name)}\b", text) is not None


def match_gated_brand(brand: str | None) -> str | None:
    """Get the gated brand a brand name matches, if any."""
    if not brand or not brand.strip():
        return None
    normalized = _normalize(brand)
    if normalized in GATED_BRANDS:
        return normalized
    for name in GATED_BRANDS:
        if _contains_name(normalized, name):
            return name
    return None


def requires_transparency(brand: str | None) -> bool:
    """Check if a brand is enrolled in the Transparency program."""
    if not brand or not brand.strip():
        return False
    normalized = _normalize(brand)
    return any(_contains_name(normalized, name) for name in TRANSPARENCY_BRANDS)


def match_restricted_category(category: str | None) -> str | None:
    """Get the restricted category a product category falls under, if any."""
    if not category:
        return None
    if category in RESTRICTED_CATEGORIES:
        return category
    lowered = category.lower()
    for name in RESTRICTED_CATEGORIES:
        if name.lower() in lowered:
            return name
    return None


def hazmat_keywords(title: str | None, category: str | None = None) -> list[str]:
    """List hazmat keywords found in the title or category."""
    if not title:
        return []
    text = f"{title.lower()} {(category or '').lower()}"
    return [keyword for keyword in HAZMAT_KEYWORDS if keyword in text]


class ComplianceChecker:
    """Collects selling restrictions for a product."""

    def check(
        self,
        brand: str | None = None,
        title: str | None = None,
        category: str | None = None,
    ) -> ComplianceReport:
        """Check a product for gating, Transparency, category and hazmat restrictions."""
        flags: list[ComplianceFlag] = []

        gated = match_gated_brand(brand)
        if gated:
            flags.append(
                ComplianceFlag(
                    flag_type="BRAND_GATED",
                    severity=GATED_BRANDS[gated],
                    title="Brand Gated",
                    description=(
                        f"{brand} is a gated brand on Amazon. Requires approval and "
                        f"invoices from authorized distributors."
                    ),
                    action="Apply for brand approval or source from authorized distributor",
                )
            )

        if requires_transparency(brand):
            flags.append(
                ComplianceFlag(
                    flag_type="TRANSPARENCY_REQUIRED",
                    severity=HIGH,
                    title="Transparency Required",
                    description=f"{brand} requires Amazon Transparency codes on each unit.",
                    action="Contact brand owner for Transparency codes",
                )
            )

        restricted = match_restricted_category(category)
        if restricted:
            difficulty, notes = RESTRICTED_CATEGORIES[restricted]
            flags.append(
                ComplianceFlag(
                    flag_type="CATEGORY_RESTRICTED",
                    severity=HIGH if difficulty == HIGH else MEDIUM,
                    title="Category Approval Required",
                    description=f"{category} requires Amazon approval to sell.",
                    action="Apply for category approval in Seller Central",
                    notes=notes,
                )
            )

        keywords = hazmat_keywords(title, category)
        if keywords:
            flags.append(
                ComplianceFlag(
                    flag_type="HAZMAT_RISK",
                    severity=HIGH if len(keywords) >= 2 else MEDIUM,
                    title="Potential Hazmat",
                    description="Product may require hazmat classification.",
                    action="Submit for hazmat review before sending to FBA",
                    notes="Higher FBA fees and storage restrictions may apply.",
                    matched_keywords=tuple(keywords),
                )
            )

        return self.summarize(flags)

    def summarize(self, flags: list[ComplianceFlag]) -> ComplianceReport:
        """Derive the overall risk from a list of flags."""
        if not flags:
            return ComplianceReport()

        has_high = any(f.severity == HIGH for f in flags)
        risk = HIGH if has_high else MEDIUM
        return ComplianceReport(
            flags=tuple(flags),
            overall_risk=risk,
            can_sell=not has_high,
            can_sell_with_approval=not any(f.flag_type == "TRANSPARENCY_REQUIRED" for f in flags),
            summary=f"{len(flags)} compliance issue(s) detected - {risk.value} risk",
        )
