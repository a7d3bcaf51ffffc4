"""Member subscription lifecycle and subscription-type templates.

States are ``active``, ``expired`` and ``pending``. Expiry is derived at read
time by :func:`classify`; the stored ``status`` is only a cache of it, written
back by mutations and by :func:`sweep_expired`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from ..domain.repositories.ledger import LedgerFilter, LedgerRepository
from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import MemberSubscription, SubscriptionTerms, SubscriptionType
from ..models._columns import PAYMENT_METHODS
from ..money import ensure_cents
from ..periods import DURATION_KINDS, add_duration

logger = get_logger("services.subscriptions")

ACTIVE = "active"
EXPIRED = "expired"
PENDING = "pending"


def classify(subscription: MemberSubscription, today: date) -> str:
    """Return the effective status of ``subscription`` on ``today``.

    Expired iff ``today >= end_date`` whatever the stored status says.
    """

    if today >= subscription.end_date:
        return EXPIRED
    if subscription.status == PENDING:
        return PENDING
    return ACTIVE


def subscription_to_dict(subscription: MemberSubscription, today: date) -> dict[str, Any]:
    payload = subscription.model_dump(mode="json")
    payload["status"] = classify(subscription, today)
    return payload


@dataclass(slots=True)
class SubscriptionTypeSummary:
    subscription_type: SubscriptionType
    subscription_count: int

    def to_dict(self) -> dict[str, Any]:
        payload = self.subscription_type.model_dump(mode="json")
        payload["subscription_count"] = self.subscription_count
        return payload


def _normalize_email(raw: Optional[str]) -> str:
    email = (raw or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("member_email must be a valid e-mail address", field="member_email")
    return email


def _check_terms(terms: SubscriptionTerms) -> None:
    if not terms.label or not terms.label.strip():
        raise ValidationError("type_label is required", field="type_label")
    ensure_cents(terms.amount, "amount")
    if terms.duration not in DURATION_KINDS:
        raise ValidationError(
            f"duration must be one of {', '.join(DURATION_KINDS)}", field="duration"
        )


def _check_payment_method(payment_method: Optional[str]) -> None:
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of {', '.join(PAYMENT_METHODS)}",
            field="payment_method",
        )


def _require_subscription(repository: LedgerRepository, subscription_id: int) -> MemberSubscription:
    subscription = repository.get_subscription(subscription_id)
    if subscription is None:
        raise NotFoundError(f"Subscription {subscription_id} not found", field="subscription_id")
    return subscription


# ----------------------------------------------------------------------
# Member subscriptions
# ----------------------------------------------------------------------
def create_subscription(
    *,
    repository: LedgerRepository,
    member_email: str,
    terms: SubscriptionTerms,
    payment_date: date,
    created_by: str,
    today: date,
    member_name: Optional[str] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
    pending: bool = False,
    subscription_type_id: Optional[int] = None,
) -> MemberSubscription:
    """Record a paid subscription running one duration from ``payment_date``."""

    email = _normalize_email(member_email)
    _check_terms(terms)
    _check_payment_method(payment_method)
    if not created_by:
        raise ValidationError("created_by is required", field="created_by")

    end_date = add_duration(payment_date, terms.duration)
    if end_date <= today:
        status = EXPIRED
    else:
        status = PENDING if pending else ACTIVE

    subscription = MemberSubscription(
        member_name=member_name,
        member_email=email,
        type_label=terms.label.strip(),
        amount=terms.amount,
        duration=terms.duration,
        subscription_type_id=subscription_type_id,
        payment_date=payment_date,
        start_date=payment_date,
        end_date=end_date,
        status=status,
        payment_method=payment_method,
        notes=notes,
        created_by=created_by,
    )
    saved = repository.upsert_subscription(subscription)
    logger.info(
        "Subscription created",
        extra={"subscription_id": saved.id, "status": status, "actor": created_by},
    )
    return saved


def assign_subscription(
    *,
    repository: LedgerRepository,
    type_id: int,
    member_email: str,
    payment_date: date,
    created_by: str,
    today: date,
    member_name: Optional[str] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> MemberSubscription:
    """Create a subscription from the current terms of an active type."""

    subscription_type = repository.get_subscription_type(type_id)
    if subscription_type is None or not subscription_type.is_active:
        raise NotFoundError(f"Subscription type {type_id} not found or inactive", field="type_id")
    return create_subscription(
        repository=repository,
        member_email=member_email,
        terms=subscription_type.terms,
        payment_date=payment_date,
        created_by=created_by,
        today=today,
        member_name=member_name,
        payment_method=payment_method,
        notes=notes,
        subscription_type_id=subscription_type.id,
    )


def renew_subscription(
    *,
    repository: LedgerRepository,
    subscription_id: int,
    actor: str,
    expected_version: Optional[int] = None,
) -> MemberSubscription:
    """Extend by one duration from the current end date.

    The write is a compare-and-swap on ``version``; a concurrent renewal or
    sweep surfaces as ``ConflictError``.
    """

    subscription = _require_subscription(repository, subscription_id)
    version = subscription.version if expected_version is None else expected_version
    subscription.end_date = add_duration(subscription.end_date, subscription.duration)
    subscription.status = ACTIVE
    subscription.renewal_count += 1
    saved = repository.upsert_subscription(subscription, expected_version=version)
    logger.info(
        "Subscription renewed",
        extra={
            "subscription_id": saved.id,
            "end_date": saved.end_date.isoformat(),
            "renewal_count": saved.renewal_count,
            "actor": actor,
        },
    )
    return saved


def get_subscription(*, repository: LedgerRepository, subscription_id: int) -> MemberSubscription:
    return _require_subscription(repository, subscription_id)


def update_subscription(
    *,
    repository: LedgerRepository,
    subscription_id: int,
    actor: str,
    notes: Optional[str] = None,
    payment_method: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> MemberSubscription:
    """Edit the bookkeeping fields; the sold terms and dates are never touched."""

    _check_payment_method(payment_method)
    subscription = _require_subscription(repository, subscription_id)
    version = subscription.version if expected_version is None else expected_version
    if notes is not None:
        subscription.notes = notes
    if payment_method is not None:
        subscription.payment_method = payment_method
    saved = repository.upsert_subscription(subscription, expected_version=version)
    logger.info(
        "Subscription updated", extra={"subscription_id": subscription_id, "actor": actor}
    )
    return saved


def revoke_subscription(*, repository: LedgerRepository, subscription_id: int, actor: str) -> None:
    repository.delete_subscription(subscription_id)
    logger.info("Subscription revoked", extra={"subscription_id": subscription_id, "actor": actor})


def sweep_expired(*, repository: LedgerRepository, today: date, actor: str) -> list[int]:
    """Persist ``expired`` on every stored row whose classification changed.

    Rows modified concurrently are skipped; the next sweep picks them up.
    Returns the ids that were updated.
    """

    swept: list[int] = []
    for subscription in repository.list_subscriptions():
        if subscription.status == EXPIRED or classify(subscription, today) != EXPIRED:
            continue
        subscription.status = EXPIRED
        try:
            repository.upsert_subscription(subscription, expected_version=subscription.version)
        except ConflictError:
            logger.warning(
                "Skipping subscription modified during sweep",
                extra={"subscription_id": subscription.id},
            )
            continue
        swept.append(subscription.id)
    logger.info("Expiry sweep finished", extra={"swept": len(swept), "actor": actor})
    return swept


def list_subscriptions(
    *,
    repository: LedgerRepository,
    today: date,
    year: Optional[int] = None,
    status: Optional[str] = None,
    member_email: Optional[str] = None,
) -> list[MemberSubscription]:
    """List subscriptions started in ``year``, filtered on effective status."""

    if status is not None and status not in (ACTIVE, EXPIRED, PENDING):
        raise ValidationError(f"Unknown status: {status!r}", field="status")
    rows = repository.list_subscriptions(LedgerFilter(year=year, member_email=member_email))
    if status is None:
        return rows
    return [row for row in rows if classify(row, today) == status]


# ----------------------------------------------------------------------
# Subscription types
# ----------------------------------------------------------------------
def _require_type(repository: LedgerRepository, type_id: int) -> SubscriptionType:
    subscription_type = repository.get_subscription_type(type_id)
    if subscription_type is None:
        raise NotFoundError(f"Subscription type {type_id} not found", field="type_id")
    return subscription_type


def list_subscription_types(
    *, repository: LedgerRepository, include_inactive: bool = False
) -> list[SubscriptionTypeSummary]:
    counts = repository.count_subscriptions_by_type()
    return [
        SubscriptionTypeSummary(subscription_type=row, subscription_count=counts.get(row.id, 0))
        for row in repository.list_subscription_types(include_inactive=include_inactive)
    ]


def create_subscription_type(
    *,
    repository: LedgerRepository,
    name: str,
    amount: int,
    duration: str,
    actor: str,
    description: Optional[str] = None,
    is_active: bool = True,
) -> SubscriptionType:
    _check_terms(SubscriptionTerms(label=name or "", amount=amount, duration=duration))
    subscription_type = SubscriptionType(
        name=name.strip(),
        amount=amount,
        duration=duration,
        description=description,
        is_active=is_active,
    )
    saved = repository.save_subscription_type(subscription_type)
    logger.info("Subscription type created", extra={"type_id": saved.id, "actor": actor})
    return saved


def update_subscription_type(
    *,
    repository: LedgerRepository,
    type_id: int,
    actor: str,
    name: Optional[str] = None,
    amount: Optional[int] = None,
    duration: Optional[str] = None,
    description: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> SubscriptionType:
    """Edit the template; existing subscriptions keep the terms they were sold with."""

    subscription_type = _require_type(repository, type_id)
    terms = SubscriptionTerms(
        label=subscription_type.name if name is None else name,
        amount=subscription_type.amount if amount is None else amount,
        duration=subscription_type.duration if duration is None else duration,
    )
    _check_terms(terms)
    subscription_type.name = terms.label.strip()
    subscription_type.amount = terms.amount
    subscription_type.duration = terms.duration
    if description is not None:
        subscription_type.description = description
    if is_active is not None:
        subscription_type.is_active = is_active
    saved = repository.save_subscription_type(subscription_type)
    logger.info("Subscription type updated", extra={"type_id": type_id, "actor": actor})
    return saved


def delete_subscription_type(
    *, repository: LedgerRepository, type_id: int, actor: str, today: date
) -> None:
    """Delete a template unless an active subscription still references it."""

    repository.delete_subscription_type(type_id, active_on=today)
    logger.info("Subscription type deleted", extra={"type_id": type_id, "actor": actor})


def members_by_subscription_type(
    *, repository: LedgerRepository, type_id: int
) -> list[MemberSubscription]:
    _require_type(repository, type_id)
    return repository.list_subscriptions(LedgerFilter(subscription_type_id=type_id))
