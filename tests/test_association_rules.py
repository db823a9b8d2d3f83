"""
Tests for association rule mining.
"""

from itertools import combinations

import numpy as np
import pandas as pd
import pytest

from iat_uml.association_rules import (
    RULE_COLUMNS,
    analyze,
    frequent_itemsets,
    mine_rules,
    to_transactions,
)
from iat_uml.config import AprioriConfig
from iat_uml.errors import DegenerateInputError, ParameterError


@pytest.fixture
def baskets():
    """Ten respondents: A and B always agree, C alternates."""
    return pd.DataFrame(
        {
            "A": ["x"] * 8 + ["y"] * 2,
            "B": ["p"] * 8 + ["q"] * 2,
            "C": ["c1", "c2"] * 5,
        }
    )


def _config(**overrides):
    params = dict(variables=("A", "B", "C"), binned=(), min_support=0.2, min_confidence=0.6)
    params.update(overrides)
    return AprioriConfig(**params)


def _support(transactions, items):
    return float(transactions[list(items)].all(axis=1).mean())


class TestTransactions:
    """Tests for the basket encoding."""

    def test_items_are_variable_value_pairs(self, baskets):
        """Each answer becomes one item named variable=value."""
        transactions = to_transactions(baskets)

        assert set(transactions.columns) == {"A=x", "A=y", "B=p", "B=q", "C=c1", "C=c2"}
        assert transactions.dtypes.eq(bool).all()
        assert (transactions.sum(axis=1) == 3).all()

    def test_missing_answers_contribute_no_item(self):
        """Missing values are left out of the basket."""
        frame = pd.DataFrame({"A": ["x", None], "B": [1.0, np.nan]})
        transactions = to_transactions(frame)

        assert set(transactions.columns) == {"A=x", "B=1"}
        assert not transactions.iloc[1].any()

    def test_empty_transactions(self):
        """Nothing to encode is an error."""
        with pytest.raises(DegenerateInputError):
            to_transactions(pd.DataFrame({"A": [np.nan, np.nan]}))


class TestFrequentItemsets:
    """Tests for the Apriori item set search."""

    def test_downward_closure(self, baskets):
        """Every subset of a frequent item set is frequent with at least its support."""
        transactions = to_transactions(baskets)
        frequent = frequent_itemsets(transactions, min_support=0.2)
        supports = {itemset: support for itemset, support in zip(frequent["itemsets"], frequent["support"])}

        for itemset, support in supports.items():
            assert support >= 0.2
            for size in range(1, len(itemset)):
                for subset in combinations(sorted(itemset), size):
                    assert frozenset(subset) in supports
                    assert supports[frozenset(subset)] >= support - 1e-12

    def test_max_len(self, baskets):
        """No item set is longer than max_len."""
        frequent = frequent_itemsets(to_transactions(baskets), min_support=0.1, max_len=2)
        assert frequent["itemsets"].map(len).max() == 2

    def test_invalid_support(self, baskets):
        """Support is a proportion above zero."""
        with pytest.raises(ParameterError):
            frequent_itemsets(to_transactions(baskets), min_support=0.0)
        with pytest.raises(ParameterError):
            frequent_itemsets(to_transactions(baskets), min_support=1.5)


class TestMineRules:
    """Tests for rule generation."""

    def test_rules_are_sound(self, baskets):
        """Reported support and confidence match the data and meet the thresholds."""
        config = _config()
        rules = mine_rules(baskets, config)
        transactions = to_transactions(baskets)

        assert not rules.empty
        for _, rule in rules.iterrows():
            both = rule["antecedents"] | rule["consequents"]
            support = _support(transactions, both)
            confidence = support / _support(transactions, rule["antecedents"])
            lift = confidence / _support(transactions, rule["consequents"])

            assert np.isclose(rule["support"], support)
            assert np.isclose(rule["confidence"], confidence)
            assert np.isclose(rule["lift"], lift)
            assert rule["support"] >= config.min_support - 1e-12
            assert rule["confidence"] >= config.min_confidence - 1e-12

    def test_expected_rule_present(self, baskets):
        """A=x always comes with B=p."""
        rules = mine_rules(baskets, _config())
        match = rules[
            (rules["antecedents"] == frozenset({"A=x"}))
            & (rules["consequents"] == frozenset({"B=p"}))
        ]
        assert len(match) == 1
        assert np.isclose(match["confidence"].iloc[0], 1.0)
        assert np.isclose(match["support"].iloc[0], 0.8)

    def test_sorted_by_confidence_then_support(self, baskets):
        """Rules are ranked by confidence, ties broken by support."""
        rules = mine_rules(baskets, _config())
        keys = list(zip(rules["confidence"], rules["support"]))
        assert keys == sorted(keys, reverse=True)

    def test_no_rules(self, baskets):
        """An unreachable support gives an empty table with the rule columns."""
        rules = mine_rules(baskets, _config(min_support=1.0))
        assert rules.empty
        assert list(rules.columns) == RULE_COLUMNS

    def test_config_validation(self):
        """Confidence must be a proportion."""
        with pytest.raises(ParameterError):
            AprioriConfig(min_confidence=1.2)


class TestAnalyze:
    """Tests for the full market basket step."""

    def test_writes_rules(self, clean_survey, layout):
        """The rules table, scatter plot and note are written."""
        config = AprioriConfig(min_support=0.3, min_confidence=0.5, max_len=3, top_n=5)
        rules = analyze(clean_survey, config, layout)

        table = pd.read_csv(layout.tables / "association_rules.csv")
        assert list(table.columns) == RULE_COLUMNS
        assert len(table) == len(rules)
        if len(table):
            assert table["antecedents"].str.startswith("{").all()
        assert (layout.figures / "association_rules_scatter.png").exists()
        assert "Market Basket Analysis" in (layout.notes / "association_rules.md").read_text()
