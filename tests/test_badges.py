"""
Unit Tests for the badge catalog and evaluator
"""
import pytest

from donation_ledger.services.badges import (
    BadgeCatalog,
    BadgeDefinition,
    BadgeId,
    badge_catalog,
    default_catalog,
    evaluate_badges,
)
from donation_ledger.services.ledger import LedgerFacts


def facts(total=0, count=0, by_association=None):
    by_association = by_association or {}
    return LedgerFacts(
        total_amount=total,
        donation_count=count,
        count_by_association=by_association,
        total_by_association={},
    )


# ============================================================================
# CATALOG TESTS
# ============================================================================

class TestBadgeCatalog:

    def test_default_catalog_order(self):
        assert badge_catalog.ids() == [
            "first_donation",
            "cumulated_100",
            "cumulated_1000",
            "loyalty",
            "completer",
        ]

    def test_completer_is_event_driven(self):
        completer = badge_catalog.get(BadgeId.COMPLETER.value)

        assert completer.event_driven is True
        assert completer.qualifies(facts(total=10_000, count=50), "assoc-1") is False

    def test_definitions_carry_display_data(self):
        for definition in badge_catalog:
            assert definition.display_name
            assert definition.image_ref == f"badges/{definition.id}.png"

    def test_duplicate_registration_rejected(self):
        catalog = default_catalog()

        with pytest.raises(ValueError):
            catalog.register(BadgeDefinition(
                id="loyalty",
                display_name="Again",
                image_ref="badges/loyalty.png",
                description="Duplicate",
            ))

    def test_register_custom_badge(self):
        catalog = default_catalog()
        catalog.register(BadgeDefinition(
            id="cumulated_5000",
            display_name="Patron",
            image_ref="badges/cumulated_5000.png",
            description="Gave 5000 or more in total",
            predicate=lambda f, _: f.total_amount >= 5000,
        ))

        assert "cumulated_5000" in catalog
        assert len(catalog) == 6
        assert evaluate_badges(facts(total=5000, count=2), "assoc-1", [], catalog) == [
            "cumulated_100", "cumulated_1000", "cumulated_5000"
        ]

    def test_ordered_follows_catalog_not_input(self):
        ordered = badge_catalog.ordered(["completer", "unknown", "first_donation"])

        assert [d.id for d in ordered] == ["first_donation", "completer"]


# ============================================================================
# EVALUATOR TESTS
# ============================================================================

class TestEvaluateBadges:

    def test_first_donation(self):
        assert evaluate_badges(facts(total=10, count=1), "assoc-1", []) == ["first_donation"]

    def test_first_donation_only_on_first(self):
        assert evaluate_badges(facts(total=20, count=2), "assoc-1", []) == []

    @pytest.mark.parametrize("total,expected", [
        (99, []),
        (100, ["cumulated_100"]),
        (999, ["cumulated_100"]),
        (1000, ["cumulated_100", "cumulated_1000"]),
    ])
    def test_cumulative_thresholds(self, total, expected):
        assert evaluate_badges(facts(total=total, count=3), "assoc-1", []) == expected

    def test_single_large_first_donation(self):
        assert evaluate_badges(facts(total=1500, count=1), "assoc-1", []) == [
            "first_donation", "cumulated_100", "cumulated_1000"
        ]

    @pytest.mark.parametrize("count,expected", [
        (9, []),
        (10, ["loyalty"]),
        (11, ["loyalty"]),
    ])
    def test_loyalty_threshold(self, count, expected):
        result = evaluate_badges(facts(total=count, count=count, by_association={"assoc-1": count}),
                                 "assoc-1", [])

        assert result == expected

    def test_loyalty_counts_only_current_association(self):
        spread = facts(total=12, count=12, by_association={"assoc-1": 6, "assoc-2": 6})

        assert evaluate_badges(spread, "assoc-1", []) == []

    def test_loyalty_checked_against_donated_association(self):
        history = facts(total=11, count=11, by_association={"assoc-1": 10, "assoc-2": 1})

        assert evaluate_badges(history, "assoc-2", []) == []
        assert evaluate_badges(history, "assoc-1", []) == ["loyalty"]

    def test_held_badges_excluded(self):
        result = evaluate_badges(facts(total=1000, count=1), "assoc-1",
                                 ["first_donation", "cumulated_100"])

        assert result == ["cumulated_1000"]

    def test_never_proposes_completer(self):
        result = evaluate_badges(facts(total=100_000, count=100, by_association={"assoc-1": 100}),
                                 "assoc-1", [])

        assert "completer" not in result
