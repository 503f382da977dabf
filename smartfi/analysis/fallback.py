"""
fallback.py — deterministic financial narrative

Built only from the AggregateRecord, with no external calls, so a user always
gets a substantive answer even when the AI endpoint is unreachable.

Figures used:
  - total net worth          (net worth source, default 0)
  - credit score             (credit report source, default 0)
  - monthly income/expenses  (bank transactions analytics, default 0)
"""

from smartfi.models import AggregateRecord

STRONG_NET_WORTH_THRESHOLD = 1_000_000

NET_WORTH_STRONG = "strong foundation"
NET_WORTH_BUILDING = "focus on building wealth"

CREDIT_EXCELLENT = "excellent"
CREDIT_GOOD = "good"
CREDIT_FAIR = "fair"
CREDIT_POOR = "poor"
CREDIT_NO_DATA = "no data"

_NET_WORTH_INSIGHT = {
    NET_WORTH_STRONG: "You have a strong financial foundation",
    NET_WORTH_BUILDING: "Focus on building your wealth through systematic investments",
}

_CREDIT_INSIGHT = {
    CREDIT_EXCELLENT: "you can access the best loan rates",
    CREDIT_GOOD: "maintain this level",
    CREDIT_FAIR: "pay dues on time and keep utilization low to move into the good band",
    CREDIT_POOR: "work on improving your credit score before taking new loans",
    CREDIT_NO_DATA: "connect a credit report to get a credit health check",
}


def classify_net_worth(total_net_worth: float) -> str:
    if total_net_worth > STRONG_NET_WORTH_THRESHOLD:
        return NET_WORTH_STRONG
    return NET_WORTH_BUILDING


def classify_credit_score(score: float) -> str:
    if score >= 750:
        return CREDIT_EXCELLENT
    if score >= 650:
        return CREDIT_GOOD
    if score >= 550:
        return CREDIT_FAIR
    if score > 0:
        return CREDIT_POOR
    return CREDIT_NO_DATA


def extract_figures(snapshot: AggregateRecord) -> dict:
    net_worth = snapshot.net_worth
    credit = snapshot.credit_report
    bank = snapshot.bank_transactions
    return {
        "total_net_worth": net_worth.total_net_worth if net_worth else 0,
        "credit_score": credit.credit_score if credit else 0,
        "monthly_income": bank.monthly_income if bank else 0.0,
        "monthly_expenses": bank.monthly_expenses if bank else 0.0,
    }


def _inr(amount: float) -> str:
    return f"₹{amount:,.0f}"


def fallback_narrative(snapshot: AggregateRecord, question: str) -> str:
    figures = extract_figures(snapshot)
    total_net_worth = figures["total_net_worth"]
    credit_score = figures["credit_score"]
    income = figures["monthly_income"]
    expenses = figures["monthly_expenses"]

    net_worth_band = classify_net_worth(total_net_worth)
    credit_band = classify_credit_score(credit_score)

    if income > 0:
        savings = income - expenses
        savings_pct = round(savings / income * 100)
        cash_flow = f"You keep {_inr(savings)} a month, {savings_pct}% of your income"
    else:
        cash_flow = "No monthly income data yet; connect a bank account to track your cash flow"

    lines = [
        "**Financial Summary** (Fallback Analysis)",
        "",
        f"**Your Question**: {question}",
        "",
        f"**Net Worth**: {_inr(total_net_worth)}",
        f"**Credit Score**: {credit_score or 'Not available'}",
        f"**Monthly Income**: {_inr(income)}",
        f"**Monthly Expenses**: {_inr(expenses)}",
        "",
        "**Key Insights**:",
        f"- Net worth ({net_worth_band}): {_NET_WORTH_INSIGHT[net_worth_band]}",
        f"- Credit score ({credit_band}): {_CREDIT_INSIGHT[credit_band]}",
        f"- Cash flow: {cash_flow}",
        "",
        "**Recommendations**:",
        "- Maintain an emergency fund of 6-12 months expenses",
        "- Continue with systematic investments (SIPs) if you have active mutual funds",
        "- Review and optimize your insurance coverage",
        "",
        "*Note: This is a basic analysis. For detailed insights, ensure all your financial accounts are connected.*",
    ]
    return "\n".join(lines)
