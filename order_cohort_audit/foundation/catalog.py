"""Product catalog configuration for order normalisation and economics.

The catalog captures every piece of business lookup data the pipeline needs:
which SKUs belong to which category (vertical), which categories imply a
multi-month subscription, the order in which categories are preferred when a
customer's first purchase spans several of them, and the two cost-of-goods
tables that apply before and after the pricing cutover.

The catalog is immutable and injected into the normaliser and the catalogue
summariser, so alternate catalogs can be used for testing or for another
storefront without touching module state.

Quick Start
-----------
>>> from order_cohort_audit.foundation.catalog import DEFAULT_CATALOG
>>> DEFAULT_CATALOG.match_sku("Ultimate Revival")
'ultimate revival'
>>> DEFAULT_CATALOG.category_for_sku("ultimate revival")
'pom hl'
>>> DEFAULT_CATALOG.is_subscription("pom hl")
True
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

_WHITESPACE = re.compile(r"\s+")
_VALUE_SEPARATORS = re.compile(r"[;,]")

# Always recognised anywhere in the SKU text, even inside longer descriptions.
_BEARD_SERUM = "beard growth serum"


def normalise_text(value: object) -> str:
    """Lower-case ``value`` and collapse runs of whitespace."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value).lower()).strip()


def split_values(value: object) -> list[str]:
    """Split a comma/semicolon separated cell into normalised items."""
    if value is None:
        return []
    parts = (normalise_text(part) for part in _VALUE_SEPARATORS.split(str(value)))
    return [part for part in parts if part]


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class CatalogConfig:
    """Immutable catalog lookup tables.

    Attributes
    ----------
    sku_categories:
        Canonical lower-case SKU label to category label.
    categories:
        The closed category set in priority order. The first category of
        this sequence wins when a customer's first month spans several.
    subscription_categories:
        Categories whose purchase implies a multi-month coverage window.
    placeholder_order_ids:
        Explicit order ids that carry no identity (payment provider names)
        and must not be used as deduplication keys.
    legacy_cogs:
        Per-SKU cost of goods before ``cogs_cutover_month``.
    current_cogs:
        Per-SKU cost of goods from ``cogs_cutover_month`` onwards.
    cogs_cutover_month:
        First ``YYYY-MM`` month priced with ``current_cogs``.
    cutover_label:
        Note attached to catalogue rows whose cost changed at the cutover.
    max_cohort_offset:
        Highest cohort offset ``m`` reported in retention/LTV/survival tables.
    one_time_coverage_days:
        Length of the coverage window of a one-time purchase.
    """

    sku_categories: Mapping[str, str]
    categories: tuple[str, ...]
    subscription_categories: frozenset[str]
    placeholder_order_ids: frozenset[str] = frozenset({"stripe"})
    legacy_cogs: Mapping[str, float] = field(default_factory=dict)
    current_cogs: Mapping[str, float] = field(default_factory=dict)
    cogs_cutover_month: str = "2025-07"
    cutover_label: str = "Magenta pricing"
    max_cohort_offset: int = 12
    one_time_coverage_days: int = 30

    def __post_init__(self) -> None:
        """Freeze the lookup tables and validate their consistency."""
        object.__setattr__(
            self,
            "sku_categories",
            _frozen({normalise_text(k): normalise_text(v) for k, v in self.sku_categories.items()}),
        )
        object.__setattr__(
            self, "categories", tuple(normalise_text(c) for c in self.categories)
        )
        object.__setattr__(
            self,
            "subscription_categories",
            frozenset(normalise_text(c) for c in self.subscription_categories),
        )
        object.__setattr__(
            self,
            "placeholder_order_ids",
            frozenset(normalise_text(p) for p in self.placeholder_order_ids),
        )
        object.__setattr__(
            self,
            "legacy_cogs",
            _frozen({normalise_text(k): float(v) for k, v in self.legacy_cogs.items()}),
        )
        object.__setattr__(
            self,
            "current_cogs",
            _frozen({normalise_text(k): float(v) for k, v in self.current_cogs.items()}),
        )

        if not self.categories:
            raise ValueError("categories must not be empty")
        if len(set(self.categories)) != len(self.categories):
            raise ValueError(f"categories must be unique: {self.categories}")
        unknown_subscription = self.subscription_categories - set(self.categories)
        if unknown_subscription:
            raise ValueError(
                f"subscription_categories must be a subset of categories: "
                f"{sorted(unknown_subscription)}"
            )
        unknown_targets = {
            sku: category
            for sku, category in self.sku_categories.items()
            if category not in self.categories
        }
        if unknown_targets:
            raise ValueError(
                f"SKUs mapped to categories outside the catalog: {unknown_targets}"
            )
        if not re.fullmatch(r"\d{4}-\d{2}", self.cogs_cutover_month):
            raise ValueError(
                f"cogs_cutover_month must be YYYY-MM, got {self.cogs_cutover_month!r}"
            )
        if self.max_cohort_offset < 0:
            raise ValueError(
                f"max_cohort_offset must be >= 0, got {self.max_cohort_offset}"
            )
        if self.one_time_coverage_days <= 0:
            raise ValueError(
                f"one_time_coverage_days must be > 0, got {self.one_time_coverage_days}"
            )

        # Longest patterns first so "moisturizer spf" wins over "moisturizer".
        object.__setattr__(
            self,
            "_sku_patterns",
            tuple(sorted(self.sku_categories, key=len, reverse=True)),
        )
        object.__setattr__(
            self,
            "_compact_categories",
            {category.replace(" ", ""): category for category in self.categories},
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "CatalogConfig":
        """Build a catalog from a JSON-like mapping.

        Missing optional keys fall back to the dataclass defaults.
        """
        required = {"sku_categories", "categories", "subscription_categories"}
        missing = sorted(required - set(payload))
        if missing:
            raise ValueError(f"Catalog definition missing keys: {missing}")

        kwargs: dict[str, Any] = {
            "sku_categories": dict(payload["sku_categories"]),
            "categories": tuple(payload["categories"]),
            "subscription_categories": frozenset(payload["subscription_categories"]),
        }
        if "placeholder_order_ids" in payload:
            kwargs["placeholder_order_ids"] = frozenset(payload["placeholder_order_ids"])
        for key in ("legacy_cogs", "current_cogs"):
            if key in payload:
                kwargs[key] = dict(payload[key])
        for key in (
            "cogs_cutover_month",
            "cutover_label",
            "max_cohort_offset",
            "one_time_coverage_days",
        ):
            if key in payload:
                kwargs[key] = payload[key]
        return cls(**kwargs)

    def is_subscription(self, category: str) -> bool:
        return category in self.subscription_categories

    def category_for_sku(self, sku: str) -> str | None:
        return self.sku_categories.get(sku)

    def match_sku(self, item: object) -> str | None:
        """Resolve free SKU text to a canonical SKU label.

        Exact labels win; otherwise the longest catalog label found as whole
        words inside the text is used.
        """
        text = normalise_text(item)
        if not text:
            return None
        if _BEARD_SERUM in self.sku_categories and _BEARD_SERUM in text:
            return _BEARD_SERUM
        if text in self.sku_categories:
            return text
        padded = f" {text} "
        for pattern in self._sku_patterns:  # type: ignore[attr-defined]
            if f" {pattern} " in padded:
                return pattern
        return None

    def match_category(self, item: object) -> str | None:
        """Resolve a category label, accepting compact forms such as ``POMHL``."""
        text = normalise_text(item)
        if text in self.categories:
            return text
        return self._compact_categories.get(text.replace(" ", ""))  # type: ignore[attr-defined]

    def categories_from_skus(self, value: object) -> set[str]:
        found: set[str] = set()
        for item in split_values(value):
            sku = self.match_sku(item)
            if sku is not None:
                found.add(self.sku_categories[sku])
        return found

    def categories_from_labels(self, value: object) -> set[str]:
        found: set[str] = set()
        for item in split_values(value):
            category = self.match_category(item)
            if category is not None:
                found.add(category)
        return found

    def prioritise(self, categories: Iterable[str]) -> str:
        """Return the highest-priority category, or ``""`` when none is given."""
        unique = {c for c in categories if c}
        if not unique:
            return ""
        rank = {category: index for index, category in enumerate(self.categories)}
        return min(unique, key=lambda c: (rank.get(c, len(rank)), c))

    def cogs_for(self, sku: str, month: str) -> float:
        """Cost of one unit of ``sku`` for an order placed in ``month``."""
        table = self.current_cogs if month >= self.cogs_cutover_month else self.legacy_cogs
        return table.get(sku, 0.0)

    def cost_changed_at_cutover(self, sku: str) -> bool:
        return self.current_cogs.get(sku, 0.0) != self.legacy_cogs.get(sku, 0.0)


DEFAULT_CATALOG = CatalogConfig(
    sku_categories={
        "ultimate revival": "pom hl",
        "power regrowth": "pom hl",
        "essential boost": "pom hl",
        "oral mix": "pom hl",
        "oral minoxidil": "pom hl",
        "vital recharge": "pom sh",
        "max power": "pom sh",
        "delay spray": "otc sh",
        "essential routine": "otc sk",
        "advanced routine": "otc sk",
        "cleanser": "otc sk",
        "moisturizer spf": "otc sk",
        "moisturizer": "otc sk",
        "eye cream": "otc sk",
        "serum": "otc sk",
        "shampoo": "otc hl",
        "conditioner": "otc hl",
        "regrowth hair pack": "otc hl",
        "regrowth pack": "otc hl",
        "beard growth serum": "pom bg",
    },
    categories=("pom hl", "pom bg", "pom sh", "otc hl", "otc sh", "otc sk"),
    subscription_categories=frozenset({"pom hl", "pom bg"}),
    legacy_cogs={
        "ultimate revival": 465.12,
        "power regrowth": 444.21,
        "essential boost": 235.75,
        "oral mix": 233.74,
        "oral minoxidil": 214.99,
        "vital recharge": 235.75,
        "max power": 332.95,
        "delay spray": 69.04,
        "essential routine": 62.32,
        "advanced routine": 80.48,
        "cleanser": 23.73,
        "moisturizer spf": 23.73,
        "moisturizer": 26.0,
        "eye cream": 28.27,
        "serum": 23.73,
        "shampoo": 23.73,
        "conditioner": 23.73,
        "regrowth hair pack": 37.35,
        "regrowth pack": 37.35,
        "beard growth serum": 159.0,
    },
    current_cogs={
        "ultimate revival": 284.7,
        "power regrowth": 271.7,
        "essential boost": 142.35,
        "oral mix": 142.35,
        "oral minoxidil": 129.35,
        "vital recharge": 142.35,
        "max power": 207.35,
        "delay spray": 69.04,
        "essential routine": 62.32,
        "advanced routine": 80.48,
        "cleanser": 23.73,
        "moisturizer spf": 23.73,
        "moisturizer": 26.0,
        "eye cream": 28.27,
        "serum": 23.73,
        "shampoo": 23.73,
        "conditioner": 23.73,
        "regrowth hair pack": 37.35,
        "regrowth pack": 37.35,
        "beard growth serum": 159.0,
    },
)
