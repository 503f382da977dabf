"""
smartfi — data aggregation and session controller for the SmartFi dashboard.

Entry point
-----------
>>> from smartfi import FinanceDataController
>>> controller = FinanceDataController()
>>> await controller.enter_demo("2222222222")
>>> answer = await controller.analyze("How is my credit health?")
"""

from .controller import FinanceDataController
from .models import AggregateRecord, DEMO_PROFILES, FetchState, SourceKey

__all__ = ["FinanceDataController", "AggregateRecord", "DEMO_PROFILES", "FetchState", "SourceKey"]
