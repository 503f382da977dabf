import json

from smartfi.models import AggregateRecord

ADVISOR_PROMPT = """You are a highly knowledgeable AI financial advisor. Analyze the following financial data and provide:

1. A clear summary of their financial position (assets, liabilities, net worth)
2. Personalized insights based on the data (investment strategy, risk analysis, debt advice)
3. Actionable recommendations to improve or optimize their financial health

User Question: {question}

Financial Data: {financial_context}

Please provide a comprehensive, actionable financial analysis in a friendly, professional tone."""


def build_financial_context(snapshot: AggregateRecord, question: str) -> str:
    raw = snapshot.raw_by_field()
    context = {
        "netWorth": raw["netWorth"],
        "creditReport": raw["creditReport"],
        "bankTransactions": raw["bankTransactions"],
        "mutualFunds": raw["mutualFunds"],
        "epfDetails": raw["epfDetails"],
        "userQuestion": question,
    }
    return json.dumps(context, default=str)


def build_prompt(snapshot: AggregateRecord, question: str) -> str:
    return ADVISOR_PROMPT.format(
        question=question,
        financial_context=build_financial_context(snapshot, question),
    )
