"""Tests for the injectable product catalog."""

import dataclasses

import pytest

from order_cohort_audit.foundation.catalog import (
    DEFAULT_CATALOG,
    CatalogConfig,
    normalise_text,
    split_values,
)


class TestTextHelpers:
    def test_normalise_text(self):
        assert normalise_text("  Ultimate   REVIVAL ") == "ultimate revival"
        assert normalise_text(None) == ""

    def test_split_values(self):
        assert split_values("Shampoo, Serum;; Cleanser ,") == ["shampoo", "serum", "cleanser"]
        assert split_values(None) == []


class TestSkuMatching:
    """Free SKU text resolves to canonical SKU labels."""

    def test_exact_label(self):
        assert DEFAULT_CATALOG.match_sku("Ultimate Revival") == "ultimate revival"

    def test_longest_pattern_wins(self):
        assert DEFAULT_CATALOG.match_sku("Moisturizer SPF 50") == "moisturizer spf"

    def test_beard_serum_is_not_plain_serum(self):
        assert DEFAULT_CATALOG.match_sku("Beard Growth Serum Kit") == "beard growth serum"
        assert DEFAULT_CATALOG.match_sku("my serum") == "serum"

    def test_unknown_sku(self):
        assert DEFAULT_CATALOG.match_sku("Mystery Box") is None
        assert DEFAULT_CATALOG.match_sku("") is None

    def test_categories_from_skus(self):
        found = DEFAULT_CATALOG.categories_from_skus("Ultimate Revival, Shampoo; Delay Spray")
        assert found == {"pom hl", "otc hl", "otc sh"}


class TestCategoryLookups:
    def test_compact_category_labels(self):
        assert DEFAULT_CATALOG.match_category("POMHL") == "pom hl"
        assert DEFAULT_CATALOG.match_category("OTC SK") == "otc sk"
        assert DEFAULT_CATALOG.match_category("other") is None

    def test_prioritise_uses_catalog_order(self):
        assert DEFAULT_CATALOG.prioritise(["otc sk", "pom bg"]) == "pom bg"
        assert DEFAULT_CATALOG.prioritise([]) == ""

    def test_subscription_categories(self):
        assert DEFAULT_CATALOG.is_subscription("pom hl")
        assert DEFAULT_CATALOG.is_subscription("pom bg")
        assert not DEFAULT_CATALOG.is_subscription("pom sh")


class TestCostTables:
    def test_cost_table_switches_at_cutover(self):
        assert DEFAULT_CATALOG.cogs_for("ultimate revival", "2025-06") == 465.12
        assert DEFAULT_CATALOG.cogs_for("ultimate revival", "2025-07") == 284.7

    def test_unknown_sku_costs_nothing(self):
        assert DEFAULT_CATALOG.cogs_for("mystery box", "2025-08") == 0.0

    def test_cost_changed_at_cutover(self):
        assert DEFAULT_CATALOG.cost_changed_at_cutover("ultimate revival")
        assert not DEFAULT_CATALOG.cost_changed_at_cutover("serum")


class TestCatalogValidation:
    """Inconsistent catalogs are rejected at construction."""

    def test_empty_categories(self):
        with pytest.raises(ValueError, match="categories must not be empty"):
            CatalogConfig(sku_categories={}, categories=(), subscription_categories=frozenset())

    def test_sku_outside_catalog(self):
        with pytest.raises(ValueError, match="outside the catalog"):
            CatalogConfig(
                sku_categories={"widget": "gadgets"},
                categories=("tools",),
                subscription_categories=frozenset(),
            )

    def test_subscription_not_in_categories(self):
        with pytest.raises(ValueError, match="subset of categories"):
            CatalogConfig(
                sku_categories={},
                categories=("tools",),
                subscription_categories=frozenset({"gadgets"}),
            )

    def test_bad_cutover_month(self):
        with pytest.raises(ValueError, match="cogs_cutover_month"):
            CatalogConfig(
                sku_categories={},
                categories=("tools",),
                subscription_categories=frozenset(),
                cogs_cutover_month="July 2025",
            )

    def test_catalog_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CATALOG.max_cohort_offset = 3
        with pytest.raises(TypeError):
            DEFAULT_CATALOG.sku_categories["widget"] = "otc sk"


class TestFromMapping:
    def test_minimal_payload(self):
        catalog = CatalogConfig.from_mapping(
            {
                "sku_categories": {"Widget": "Gadgets"},
                "categories": ["Gadgets", "Tools"],
                "subscription_categories": ["gadgets"],
                "max_cohort_offset": 6,
            }
        )
        assert catalog.match_sku("widget pro") == "widget"
        assert catalog.category_for_sku("widget") == "gadgets"
        assert catalog.is_subscription("gadgets")
        assert catalog.max_cohort_offset == 6
        assert catalog.cogs_cutover_month == "2025-07"

    def test_missing_keys(self):
        with pytest.raises(ValueError, match="missing keys"):
            CatalogConfig.from_mapping({"categories": ["tools"]})
