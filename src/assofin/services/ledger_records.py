"""Validated management of categories, budgets, expenses and revenues."""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..domain.repositories.ledger import LedgerRepository
from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Budget, Expense, FinancialCategory, Revenue
from ..models._columns import CATEGORY_TYPES, PAYMENT_METHODS, REVENUE_TYPES
from ..money import ensure_cents
from ..periods import Period

logger = get_logger("services.ledger_records")

INCOME = "income"
EXPENSE = "expense"


def _text(value: Optional[str], field: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _category(
    repository: LedgerRepository, category_id: int, expected_type: str
) -> FinancialCategory:
    category = repository.get_category(category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", field="category_id")
    if category.type != expected_type:
        raise ValidationError(
            f"Category {category.name!r} is not an {expected_type} category",
            field="category_id",
        )
    return category


def _payment_method(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of {', '.join(PAYMENT_METHODS)}",
            field="payment_method",
        )
    return value


def _check_parent(
    repository: LedgerRepository, parent_id: Optional[int], category_id: Optional[int] = None
) -> None:
    """Parents must exist, be top-level and not be the category itself."""

    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise ValidationError("a category cannot be its own parent", field="parent_id")
    parent = repository.get_category(parent_id)
    if parent is None:
        raise NotFoundError(f"Parent category {parent_id} not found", field="parent_id")
    if parent.parent_id is not None:
        raise ValidationError("categories only nest one level deep", field="parent_id")
    if category_id is not None and any(
        child.parent_id == category_id for child in repository.list_categories()
    ):
        raise ValidationError(
            "a category with sub-categories cannot become a sub-category", field="parent_id"
        )


def create_category(
    *,
    repository: LedgerRepository,
    name: str,
    type: str,
    actor: str,
    parent_id: Optional[int] = None,
    description: Optional[str] = None,
) -> FinancialCategory:
    if type not in CATEGORY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(CATEGORY_TYPES)}", field="type")
    _check_parent(repository, parent_id)
    category = FinancialCategory(
        name=_text(name, "name"), type=type, parent_id=parent_id, description=description
    )
    saved = repository.save_category(category)
    logger.info(
        "Category created",
        extra={"category_id": saved.id, "category_type": type, "actor": actor},
    )
    return saved


def update_category(
    *,
    repository: LedgerRepository,
    category_id: int,
    actor: str,
    name: Optional[str] = None,
    type: Optional[str] = None,
    parent_id: Optional[int] = None,
    description: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> FinancialCategory:
    """Update a category; its type is frozen once ledger rows reference it."""

    category = repository.get_category(category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", field="category_id")

    if type is not None and type != category.type:
        if type not in CATEGORY_TYPES:
            raise ValidationError(
                f"type must be one of {', '.join(CATEGORY_TYPES)}", field="type"
            )
        if repository.category_in_use(category_id):
            raise ConflictError(
                f"Category {category_id} is referenced by ledger records; its type cannot change",
                field="type",
            )
        category.type = type
    if parent_id is not None:
        _check_parent(repository, parent_id, category_id)
        category.parent_id = parent_id
    if name is not None:
        category.name = _text(name, "name")
    if description is not None:
        category.description = description
    if is_active is not None:
        category.is_active = is_active
    saved = repository.save_category(category)
    logger.info("Category updated", extra={"category_id": category_id, "actor": actor})
    return saved


def create_budget(
    *,
    repository: LedgerRepository,
    name: str,
    category_id: int,
    period: Period,
    amount: int,
    created_by: str,
    description: Optional[str] = None,
) -> Budget:
    """Plan ``amount`` cents of spend for an expense category over ``period``."""

    ensure_cents(amount, "amount")
    _category(repository, category_id, EXPENSE)
    budget = Budget(
        name=_text(name, "name"),
        category_id=category_id,
        period=period.kind,
        year=period.year,
        month=period.month,
        quarter=period.quarter,
        amount=amount,
        description=description,
        created_by=_text(created_by, "created_by"),
    )
    saved = repository.save_budget(budget)
    logger.info(
        "Budget created",
        extra={"budget_id": saved.id, "period": period.label, "actor": created_by},
    )
    return saved


def create_expense(
    *,
    repository: LedgerRepository,
    category_id: int,
    description: str,
    amount: int,
    expense_date: date,
    created_by: str,
    budget_id: Optional[int] = None,
    vendor: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Expense:
    ensure_cents(amount, "amount")
    _category(repository, category_id, EXPENSE)
    if budget_id is not None and repository.get_budget(budget_id) is None:
        raise NotFoundError(f"Budget {budget_id} not found", field="budget_id")
    expense = Expense(
        category_id=category_id,
        description=_text(description, "description"),
        amount=amount,
        expense_date=expense_date,
        budget_id=budget_id,
        vendor=vendor,
        payment_method=_payment_method(payment_method),
        created_by=_text(created_by, "created_by"),
    )
    saved = repository.save_expense(expense)
    logger.info("Expense recorded", extra={"expense_id": saved.id, "actor": created_by})
    return saved


def create_revenue(
    *,
    repository: LedgerRepository,
    revenue_type: str,
    source_name: str,
    amount: int,
    received_date: date,
    created_by: str,
    source_contact: Optional[str] = None,
    category_id: Optional[int] = None,
    payment_method: Optional[str] = None,
    receipt_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> Revenue:
    if revenue_type not in REVENUE_TYPES:
        raise ValidationError(
            f"revenue_type must be one of {', '.join(REVENUE_TYPES)}", field="revenue_type"
        )
    ensure_cents(amount, "amount")
    if category_id is not None:
        _category(repository, category_id, INCOME)
    revenue = Revenue(
        revenue_type=revenue_type,
        source_name=_text(source_name, "source_name"),
        source_contact=source_contact,
        amount=amount,
        received_date=received_date,
        category_id=category_id,
        payment_method=_payment_method(payment_method),
        receipt_reference=receipt_reference,
        notes=notes,
        created_by=_text(created_by, "created_by"),
    )
    saved = repository.save_revenue(revenue)
    logger.info("Revenue recorded", extra={"revenue_id": saved.id, "actor": created_by})
    return saved


def update_budget(
    *,
    repository: LedgerRepository,
    budget_id: int,
    actor: str,
    name: Optional[str] = None,
    category_id: Optional[int] = None,
    period: Optional[Period] = None,
    amount: Optional[int] = None,
    description: Optional[str] = None,
) -> Budget:
    budget = repository.get_budget(budget_id)
    if budget is None:
        raise NotFoundError(f"Budget {budget_id} not found", field="budget_id")
    if category_id is not None:
        _category(repository, category_id, EXPENSE)
        budget.category_id = category_id
    if period is not None:
        budget.period = period.kind
        budget.year = period.year
        budget.month = period.month
        budget.quarter = period.quarter
    if amount is not None:
        budget.amount = ensure_cents(amount, "amount")
    if name is not None:
        budget.name = _text(name, "name")
    if description is not None:
        budget.description = description
    saved = repository.save_budget(budget)
    logger.info("Budget updated", extra={"budget_id": budget_id, "actor": actor})
    return saved


def delete_budget(*, repository: LedgerRepository, budget_id: int, actor: str) -> None:
    """Delete a budget; expenses drawn from it stay recorded, unlinked."""

    repository.delete_budget(budget_id)
    logger.info("Budget deleted", extra={"budget_id": budget_id, "actor": actor})


def update_expense(
    *,
    repository: LedgerRepository,
    expense_id: int,
    actor: str,
    category_id: Optional[int] = None,
    description: Optional[str] = None,
    amount: Optional[int] = None,
    expense_date: Optional[date] = None,
    budget_id: Optional[int] = None,
    vendor: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Expense:
    expense = repository.get_expense(expense_id)
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found", field="expense_id")
    if category_id is not None:
        _category(repository, category_id, EXPENSE)
        expense.category_id = category_id
    if budget_id is not None:
        if repository.get_budget(budget_id) is None:
            raise NotFoundError(f"Budget {budget_id} not found", field="budget_id")
        expense.budget_id = budget_id
    if amount is not None:
        expense.amount = ensure_cents(amount, "amount")
    if description is not None:
        expense.description = _text(description, "description")
    if expense_date is not None:
        expense.expense_date = expense_date
    if vendor is not None:
        expense.vendor = vendor
    if payment_method is not None:
        expense.payment_method = _payment_method(payment_method)
    saved = repository.save_expense(expense)
    logger.info("Expense updated", extra={"expense_id": expense_id, "actor": actor})
    return saved


def delete_expense(*, repository: LedgerRepository, expense_id: int, actor: str) -> None:
    repository.delete_expense(expense_id)
    logger.info("Expense deleted", extra={"expense_id": expense_id, "actor": actor})


def update_revenue(
    *,
    repository: LedgerRepository,
    revenue_id: int,
    actor: str,
    revenue_type: Optional[str] = None,
    source_name: Optional[str] = None,
    source_contact: Optional[str] = None,
    amount: Optional[int] = None,
    received_date: Optional[date] = None,
    category_id: Optional[int] = None,
    payment_method: Optional[str] = None,
    receipt_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> Revenue:
    revenue = repository.get_revenue(revenue_id)
    if revenue is None:
        raise NotFoundError(f"Revenue {revenue_id} not found", field="revenue_id")
    if revenue_type is not None:
        if revenue_type not in REVENUE_TYPES:
            raise ValidationError(
                f"revenue_type must be one of {', '.join(REVENUE_TYPES)}", field="revenue_type"
            )
        revenue.revenue_type = revenue_type
    if category_id is not None:
        _category(repository, category_id, INCOME)
        revenue.category_id = category_id
    if amount is not None:
        revenue.amount = ensure_cents(amount, "amount")
    if source_name is not None:
        revenue.source_name = _text(source_name, "source_name")
    if source_contact is not None:
        revenue.source_contact = source_contact
    if received_date is not None:
        revenue.received_date = received_date
    if payment_method is not None:
        revenue.payment_method = _payment_method(payment_method)
    if receipt_reference is not None:
        revenue.receipt_reference = receipt_reference
    if notes is not None:
        revenue.notes = notes
    saved = repository.save_revenue(revenue)
    logger.info("Revenue updated", extra={"revenue_id": revenue_id, "actor": actor})
    return saved


def delete_revenue(*, repository: LedgerRepository, revenue_id: int, actor: str) -> None:
    repository.delete_revenue(revenue_id)
    logger.info("Revenue deleted", extra={"revenue_id": revenue_id, "actor": actor})
