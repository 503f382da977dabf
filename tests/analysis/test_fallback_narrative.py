import pytest

from smartfi.analysis.fallback import (
    CREDIT_NO_DATA,
    NET_WORTH_BUILDING,
    NET_WORTH_STRONG,
    classify_credit_score,
    classify_net_worth,
    extract_figures,
    fallback_narrative,
)
from smartfi.models import AggregateRecord, SourceKey, parse_payload


def record(**raw_by_key):
    rec = AggregateRecord()
    for name, raw in raw_by_key.items():
        key = SourceKey(name)
        rec.set(key, parse_payload(key, raw))
    return rec


@pytest.mark.parametrize(
    "score,band",
    [
        (820, "excellent"),
        (750, "excellent"),
        (749, "good"),
        (650, "good"),
        (600, "fair"),
        (550, "fair"),
        (549, "poor"),
        (1, "poor"),
        (0, "no data"),
    ],
)
def test_credit_score_bands(score, band):
    assert classify_credit_score(score) == band


def test_net_worth_threshold_is_strictly_above_one_million():
    assert classify_net_worth(1_000_000) == NET_WORTH_BUILDING
    assert classify_net_worth(1_000_001) == NET_WORTH_STRONG
    assert classify_net_worth(0) == NET_WORTH_BUILDING


def test_empty_record_yields_defaults():
    figures = extract_figures(AggregateRecord())
    assert figures == {"total_net_worth": 0, "credit_score": 0, "monthly_income": 0.0, "monthly_expenses": 0.0}


def test_zero_figures_narrative_uses_no_data_and_building_wealth():
    text = fallback_narrative(AggregateRecord(), "How am I doing?")
    assert CREDIT_NO_DATA in text
    assert NET_WORTH_BUILDING in text
    assert "Not available" in text
    assert "6-12 months" in text
    assert "insurance" in text


def test_strong_profile_narrative():
    rec = record(
        net_worth={"netWorthResponse": {"totalNetWorthValue": {"units": "2500000"}}},
        credit_report={"creditReport": {"creditScore": 780}},
        bank_transactions={"monthlyAnalytics": {"totalIncome": 100000, "totalExpenses": 60000}},
    )
    text = fallback_narrative(rec, "Should I prepay my loan?")

    assert NET_WORTH_STRONG in text
    assert "excellent" in text
    assert "₹2,500,000" in text
    assert "₹40,000 a month, 40% of your income" in text
    assert "Should I prepay my loan?" in text


def test_malformed_amounts_default_to_zero():
    rec = record(
        net_worth={"netWorthResponse": {"totalNetWorthValue": {"units": "n/a"}}},
        credit_report=["unexpected", "shape"],
    )
    figures = extract_figures(rec)
    assert figures["total_net_worth"] == 0
    assert figures["credit_score"] == 0


def test_narrative_is_deterministic():
    rec = record(credit_report={"creditReport": {"creditScore": "690"}})
    assert fallback_narrative(rec, "q") == fallback_narrative(rec, "q")
    assert "good" in fallback_narrative(rec, "q")
