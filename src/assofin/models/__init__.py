"""SQLModel table exports."""

from .budget import Budget
from .category import FinancialCategory
from .expense import Expense
from .forecast import Forecast
from .revenue import Revenue
from .subscription import MemberSubscription, SubscriptionTerms, SubscriptionType

__all__ = [
    "Budget",
    "Expense",
    "FinancialCategory",
    "Forecast",
    "MemberSubscription",
    "Revenue",
    "SubscriptionTerms",
    "SubscriptionType",
]
