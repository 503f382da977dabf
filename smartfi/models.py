"""
Data model for the SmartFi data layer.

Every remote source is represented by its own payload model, tagged by
``source`` so consumers can dispatch on the SourceKey instead of probing an
open-ended dict for optional fields.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class SourceKey(str, Enum):
    NET_WORTH = "net_worth"
    CREDIT_REPORT = "credit_report"
    EPF_DETAILS = "epf_details"
    MUTUAL_FUNDS = "mutual_funds"
    BANK_TRANSACTIONS = "bank_transactions"

    @property
    def tool_name(self) -> str:
        return TOOL_NAMES[self]

    @property
    def field_name(self) -> str:
        """camelCase name used in the analysis prompt context."""
        return FIELD_NAMES[self]


TOOL_NAMES = {
    SourceKey.NET_WORTH: "fetch_net_worth",
    SourceKey.CREDIT_REPORT: "fetch_credit_report",
    SourceKey.EPF_DETAILS: "fetch_epf_details",
    SourceKey.MUTUAL_FUNDS: "fetch_mutual_fund_transactions",
    SourceKey.BANK_TRANSACTIONS: "fetch_bank_transactions",
}

FIELD_NAMES = {
    SourceKey.NET_WORTH: "netWorth",
    SourceKey.CREDIT_REPORT: "creditReport",
    SourceKey.EPF_DETAILS: "epfDetails",
    SourceKey.MUTUAL_FUNDS: "mutualFunds",
    SourceKey.BANK_TRANSACTIONS: "bankTransactions",
}


def _to_number(value: Any) -> float:
    """Best-effort numeric coercion; the API sends amounts as strings or numbers."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        try:
            number = float(value.replace(",", "").strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    # NaN and infinities cannot be shown as amounts or truncated to int
    if not math.isfinite(number):
        return 0.0
    return number


def _dig(raw: Any, *path: str) -> Any:
    node = raw
    for part in path:
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


# ---------------------------------------------------------------------------
# Source payloads
# ---------------------------------------------------------------------------

class NetWorthData(BaseModel):
    source: Literal[SourceKey.NET_WORTH] = SourceKey.NET_WORTH
    raw: Any = None

    @property
    def total_net_worth(self) -> int:
        units = _dig(self.raw, "netWorthResponse", "totalNetWorthValue", "units")
        return int(_to_number(units))


class CreditReportData(BaseModel):
    source: Literal[SourceKey.CREDIT_REPORT] = SourceKey.CREDIT_REPORT
    raw: Any = None

    @property
    def credit_score(self) -> int:
        return int(_to_number(_dig(self.raw, "creditReport", "creditScore")))


class EPFDetailsData(BaseModel):
    source: Literal[SourceKey.EPF_DETAILS] = SourceKey.EPF_DETAILS
    raw: Any = None


class MutualFundsData(BaseModel):
    source: Literal[SourceKey.MUTUAL_FUNDS] = SourceKey.MUTUAL_FUNDS
    raw: Any = None


class BankTransactionsData(BaseModel):
    source: Literal[SourceKey.BANK_TRANSACTIONS] = SourceKey.BANK_TRANSACTIONS
    raw: Any = None

    @property
    def monthly_income(self) -> float:
        return _to_number(_dig(self.raw, "monthlyAnalytics", "totalIncome"))

    @property
    def monthly_expenses(self) -> float:
        return _to_number(_dig(self.raw, "monthlyAnalytics", "totalExpenses"))

    @property
    def savings_rate(self) -> Optional[float]:
        rate = _dig(self.raw, "monthlyAnalytics", "savingsRate")
        if rate is None:
            return None
        return _to_number(rate)


SourcePayload = Annotated[
    Union[NetWorthData, CreditReportData, EPFDetailsData, MutualFundsData, BankTransactionsData],
    Field(discriminator="source"),
]

_payload_adapter = TypeAdapter(SourcePayload)


def parse_payload(key: SourceKey, raw: Any) -> SourcePayload:
    """Wrap the opaque JSON returned for ``key`` in its tagged payload model."""
    return _payload_adapter.validate_python({"source": key, "raw": raw})


class AggregateRecord:
    """
    Successful payloads keyed by SourceKey.

    A key is present only once its fetch has succeeded; later failures never
    remove it.
    """

    def __init__(self, payloads: Optional[Dict[SourceKey, SourcePayload]] = None):
        self._payloads: Dict[SourceKey, SourcePayload] = dict(payloads or {})

    def get(self, key: SourceKey) -> Optional[SourcePayload]:
        return self._payloads.get(key)

    def set(self, key: SourceKey, payload: SourcePayload) -> None:
        if payload.source != key:
            raise ValueError(f"payload for {payload.source.value} stored under {key.value}")
        self._payloads[key] = payload

    def clear(self) -> None:
        self._payloads.clear()

    def copy(self) -> "AggregateRecord":
        return AggregateRecord(self._payloads)

    def keys(self):
        return self._payloads.keys()

    def __contains__(self, key: object) -> bool:
        return key in self._payloads

    def __iter__(self) -> Iterator[SourceKey]:
        return iter(self._payloads)

    def __len__(self) -> int:
        return len(self._payloads)

    # Typed accessors
    @property
    def net_worth(self) -> Optional[NetWorthData]:
        return self._payloads.get(SourceKey.NET_WORTH)

    @property
    def credit_report(self) -> Optional[CreditReportData]:
        return self._payloads.get(SourceKey.CREDIT_REPORT)

    @property
    def bank_transactions(self) -> Optional[BankTransactionsData]:
        return self._payloads.get(SourceKey.BANK_TRANSACTIONS)

    def raw_by_field(self) -> Dict[str, Any]:
        """Raw JSON for every source under its camelCase name, None when absent."""
        out = {}
        for key in SourceKey:
            payload = self._payloads.get(key)
            out[key.field_name] = payload.raw if payload is not None else None
        return out


class FetchState(BaseModel):
    loading: bool = False
    error: Optional[str] = None
    login_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Modes and demo profiles
# ---------------------------------------------------------------------------

class ModeState(str, Enum):
    UNSET = "unset"
    DEMO = "demo"
    DELEGATED = "delegated"


class DemoMode(BaseModel):
    kind: Literal["demo"] = "demo"
    phone_number: str


class DelegatedMode(BaseModel):
    kind: Literal["delegated"] = "delegated"


PersistedMode = Union[DemoMode, DelegatedMode]


class DemoProfile(BaseModel):
    phone_number: str
    description: str


DEMO_PROFILES = [
    DemoProfile(phone_number="2222222222", description="Complete Portfolio - All assets connected with large mutual fund portfolio"),
    DemoProfile(phone_number="7777777777", description="Debt-Heavy Profile - High debt, poor performance scenario"),
    DemoProfile(phone_number="8888888888", description="SIP Investor - Consistent monthly SIP investor profile"),
    DemoProfile(phone_number="9999999999", description="Conservative Investor - Fixed income fanatic with low-risk investments"),
    DemoProfile(phone_number="1010101010", description="Gold Investor - High allocation to precious metals"),
    DemoProfile(phone_number="5555555555", description="No Credit Score - All assets except credit report"),
    DemoProfile(phone_number="1111111111", description="Minimal Assets - Only savings account balance"),
]

DEMO_PHONE_NUMBERS = frozenset(p.phone_number for p in DEMO_PROFILES)


class Session(BaseModel):
    id: str
    mode: Optional[PersistedMode] = None


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

DEFAULT_QUESTION = "Provide a comprehensive financial analysis"


class AnalysisRequest(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    question: str
    snapshot: AggregateRecord


class AnalysisResult(BaseModel):
    text: str
    source: Literal["ai", "fallback"]
