from __future__ import annotations

from datetime import date

import pytest

from assofin.errors import ConflictError, NotFoundError, ValidationError
from assofin.models import MemberSubscription, SubscriptionTerms
from assofin.periods import add_duration
from assofin.services import subscriptions

ACTOR = "treasurer@example.org"
MONTHLY = SubscriptionTerms(label="Monthly member", amount=2000, duration="monthly")


def _subscription(end_date: date, status: str = "active") -> MemberSubscription:
    return MemberSubscription(
        member_email="m@example.org",
        type_label="Standard",
        amount=100,
        duration="monthly",
        payment_date=date(2026, 1, 1),
        start_date=date(2026, 1, 1),
        end_date=end_date,
        status=status,
        created_by=ACTOR,
    )


@pytest.mark.parametrize("stored", ["active", "expired", "pending"])
def test_classify_depends_only_on_end_date_for_expiry(stored):
    end = date(2026, 2, 1)
    sub = _subscription(end, status=stored)

    assert subscriptions.classify(sub, date(2026, 2, 1)) == "expired"
    assert subscriptions.classify(sub, date(2026, 3, 1)) == "expired"
    assert subscriptions.classify(sub, date(2026, 1, 31)) != "expired"


def test_classify_keeps_pending_until_expiry():
    assert subscriptions.classify(_subscription(date(2026, 2, 1), "pending"), date(2026, 1, 5)) == "pending"
    assert subscriptions.classify(_subscription(date(2026, 2, 1), "expired"), date(2026, 1, 5)) == "active"


def test_create_subscription_scenario(repository):
    row = subscriptions.create_subscription(
        repository=repository,
        member_email="  Alice@Example.org ",
        member_name="Alice",
        terms=MONTHLY,
        payment_date=date(2026, 1, 15),
        created_by=ACTOR,
        today=date(2026, 1, 20),
    )

    assert row.id is not None
    assert row.start_date == date(2026, 1, 15)
    assert row.end_date == date(2026, 2, 15)
    assert row.status == "active"
    assert row.member_email == "alice@example.org"
    assert row.terms == MONTHLY
    assert row.renewal_count == 0
    assert row.created_by == ACTOR


def test_create_subscription_in_the_past_is_expired(repository):
    row = subscriptions.create_subscription(
        repository=repository,
        member_email="a@example.org",
        terms=MONTHLY,
        payment_date=date(2025, 1, 15),
        created_by=ACTOR,
        today=date(2026, 1, 20),
    )
    assert row.status == "expired"


def test_create_pending_subscription(repository):
    row = subscriptions.create_subscription(
        repository=repository,
        member_email="a@example.org",
        terms=MONTHLY,
        payment_date=date(2026, 1, 15),
        created_by=ACTOR,
        today=date(2026, 1, 20),
        pending=True,
    )
    assert row.status == "pending"


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"member_email": "not-an-email"}, "member_email"),
        ({"terms": SubscriptionTerms("Bad", -1, "monthly")}, "amount"),
        ({"terms": SubscriptionTerms("Bad", 100, "weekly")}, "duration"),
        ({"payment_method": "bitcoin"}, "payment_method"),
        ({"created_by": ""}, "created_by"),
    ],
)
def test_create_subscription_validation(repository, overrides, field):
    kwargs = dict(
        repository=repository,
        member_email="a@example.org",
        terms=MONTHLY,
        payment_date=date(2026, 1, 15),
        created_by=ACTOR,
        today=date(2026, 1, 20),
    )
    kwargs.update(overrides)
    with pytest.raises(ValidationError) as excinfo:
        subscriptions.create_subscription(**kwargs)
    assert excinfo.value.field == field


def test_assign_copies_terms_as_a_snapshot(repository, subscription_type_factory):
    gold = subscription_type_factory(name="Gold", amount=12000, duration="yearly")

    row = subscriptions.assign_subscription(
        repository=repository,
        type_id=gold.id,
        member_email="a@example.org",
        payment_date=date(2026, 3, 1),
        created_by=ACTOR,
        today=date(2026, 3, 1),
    )
    subscriptions.update_subscription_type(
        repository=repository, type_id=gold.id, amount=15000, duration="monthly", actor=ACTOR
    )

    stored = repository.get_subscription(row.id)
    assert stored.terms == SubscriptionTerms(label="Gold", amount=12000, duration="yearly")
    assert stored.end_date == date(2027, 3, 1)
    assert stored.subscription_type_id == gold.id


def test_assign_requires_an_active_type(repository, subscription_type_factory):
    retired = subscription_type_factory(name="Retired", is_active=False)
    for type_id in (retired.id, 9999):
        with pytest.raises(NotFoundError) as excinfo:
            subscriptions.assign_subscription(
                repository=repository,
                type_id=type_id,
                member_email="a@example.org",
                payment_date=date(2026, 3, 1),
                created_by=ACTOR,
                today=date(2026, 3, 1),
            )
        assert excinfo.value.field == "type_id"


def test_double_renewal_composes(repository, subscription_factory):
    original = subscription_factory(payment_date=date(2024, 1, 31), duration="monthly")
    assert original.end_date == date(2024, 2, 29)

    subscriptions.renew_subscription(repository=repository, subscription_id=original.id, actor=ACTOR)
    renewed = subscriptions.renew_subscription(
        repository=repository, subscription_id=original.id, actor=ACTOR
    )

    assert renewed.end_date == add_duration(add_duration(original.end_date, "monthly"), "monthly")
    assert renewed.start_date == original.start_date
    assert renewed.renewal_count == 2
    assert renewed.status == "active"
    assert renewed.version == 3


def test_renewal_extends_lapsed_subscription_from_old_end(repository, subscription_factory):
    lapsed = subscription_factory(payment_date=date(2025, 1, 10), status="expired")

    renewed = subscriptions.renew_subscription(
        repository=repository, subscription_id=lapsed.id, actor=ACTOR
    )

    assert renewed.end_date == date(2025, 3, 10)
    assert renewed.status == "active"


def test_renew_with_stale_version_conflicts(repository, subscription_factory):
    sub = subscription_factory()
    subscriptions.renew_subscription(repository=repository, subscription_id=sub.id, actor=ACTOR)

    with pytest.raises(ConflictError):
        subscriptions.renew_subscription(
            repository=repository, subscription_id=sub.id, actor=ACTOR, expected_version=1
        )
    assert repository.get_subscription(sub.id).renewal_count == 1


def test_renew_and_revoke_missing_subscription(repository):
    with pytest.raises(NotFoundError):
        subscriptions.renew_subscription(repository=repository, subscription_id=404, actor=ACTOR)
    with pytest.raises(NotFoundError):
        subscriptions.revoke_subscription(repository=repository, subscription_id=404, actor=ACTOR)


def test_revoke_is_a_hard_delete(repository, subscription_factory):
    sub = subscription_factory()

    subscriptions.revoke_subscription(repository=repository, subscription_id=sub.id, actor=ACTOR)

    assert repository.get_subscription(sub.id) is None


def test_sweep_persists_expiry_once(repository, subscription_factory):
    lapsed = subscription_factory(payment_date=date(2026, 1, 1))
    current = subscription_factory(member_email="b@example.org", payment_date=date(2026, 3, 1))
    today = date(2026, 3, 10)

    assert subscriptions.sweep_expired(repository=repository, today=today, actor="cron") == [lapsed.id]
    assert subscriptions.sweep_expired(repository=repository, today=today, actor="cron") == []
    assert repository.get_subscription(lapsed.id).status == "expired"
    assert repository.get_subscription(current.id).status == "active"


def test_list_subscriptions_filters_on_effective_status(repository, subscription_factory):
    subscription_factory(member_email="a@example.org", payment_date=date(2026, 1, 1))
    subscription_factory(member_email="b@example.org", payment_date=date(2026, 3, 1))
    today = date(2026, 3, 10)

    expired = subscriptions.list_subscriptions(repository=repository, today=today, status="expired")
    active = subscriptions.list_subscriptions(repository=repository, today=today, status="active")

    assert [row.member_email for row in expired] == ["a@example.org"]
    assert [row.member_email for row in active] == ["b@example.org"]
    assert subscriptions.subscription_to_dict(expired[0], today)["status"] == "expired"
    with pytest.raises(ValidationError):
        subscriptions.list_subscriptions(repository=repository, today=today, status="lapsed")


def test_subscription_types_listing_counts(repository, subscription_type_factory, subscription_factory):
    basic = subscription_type_factory(name="Basic")
    subscription_type_factory(name="Old", is_active=False)
    subscription_factory(subscription_type_id=basic.id)

    active_only = subscriptions.list_subscription_types(repository=repository)
    everything = subscriptions.list_subscription_types(repository=repository, include_inactive=True)

    assert [(s.subscription_type.name, s.subscription_count) for s in active_only] == [("Basic", 1)]
    assert len(everything) == 2
    assert active_only[0].to_dict()["subscription_count"] == 1


def test_delete_type_blocked_by_active_subscriptions(
    repository, subscription_type_factory, subscription_factory
):
    basic = subscription_type_factory(name="Basic")
    sub = subscription_factory(payment_date=date(2026, 1, 1), subscription_type_id=basic.id)

    with pytest.raises(ConflictError):
        subscriptions.delete_subscription_type(
            repository=repository, type_id=basic.id, actor=ACTOR, today=date(2026, 1, 10)
        )

    subscriptions.delete_subscription_type(
        repository=repository, type_id=basic.id, actor=ACTOR, today=date(2026, 2, 1)
    )
    assert repository.get_subscription_type(basic.id) is None
    assert repository.get_subscription(sub.id).subscription_type_id is None


def test_create_and_update_subscription_type_validation(repository):
    created = subscriptions.create_subscription_type(
        repository=repository, name=" Family ", amount=8000, duration="yearly", actor=ACTOR
    )
    assert created.name == "Family"

    with pytest.raises(ValidationError):
        subscriptions.create_subscription_type(
            repository=repository, name="Broken", amount=-5, duration="yearly", actor=ACTOR
        )
    with pytest.raises(NotFoundError):
        subscriptions.update_subscription_type(repository=repository, type_id=999, actor=ACTOR)

    updated = subscriptions.update_subscription_type(
        repository=repository, type_id=created.id, is_active=False, actor=ACTOR
    )
    assert updated.is_active is False
    assert updated.amount == 8000


def test_members_by_subscription_type(repository, subscription_type_factory, subscription_factory):
    basic = subscription_type_factory(name="Basic")
    subscription_factory(member_email="a@example.org", subscription_type_id=basic.id)
    subscription_factory(member_email="b@example.org")

    members = subscriptions.members_by_subscription_type(repository=repository, type_id=basic.id)

    assert [m.member_email for m in members] == ["a@example.org"]
    with pytest.raises(NotFoundError):
        subscriptions.members_by_subscription_type(repository=repository, type_id=999)


def test_update_subscription_touches_bookkeeping_only(repository, subscription_factory):
    stored = subscription_factory(payment_date=date(2026, 1, 15), duration="monthly", amount=2000)

    updated = subscriptions.update_subscription(
        repository=repository,
        subscription_id=stored.id,
        actor=ACTOR,
        notes="Paid at the AGM",
        payment_method="cash",
    )

    assert updated.notes == "Paid at the AGM"
    assert updated.payment_method == "cash"
    assert updated.terms == stored.terms
    assert (updated.start_date, updated.end_date) == (stored.start_date, stored.end_date)
    assert updated.renewal_count == stored.renewal_count
    assert updated.version == stored.version + 1
    fetched = subscriptions.get_subscription(repository=repository, subscription_id=stored.id)
    assert (fetched.id, fetched.notes, fetched.version) == (stored.id, "Paid at the AGM", updated.version)


def test_update_subscription_validation_and_races(repository, subscription_factory):
    stored = subscription_factory()

    with pytest.raises(ValidationError) as excinfo:
        subscriptions.update_subscription(
            repository=repository, subscription_id=stored.id, actor=ACTOR, payment_method="bitcoin"
        )
    assert excinfo.value.field == "payment_method"

    with pytest.raises(ConflictError):
        subscriptions.update_subscription(
            repository=repository,
            subscription_id=stored.id,
            actor=ACTOR,
            notes="stale",
            expected_version=stored.version + 5,
        )
    with pytest.raises(NotFoundError):
        subscriptions.get_subscription(repository=repository, subscription_id=999)
    with pytest.raises(NotFoundError):
        subscriptions.update_subscription(
            repository=repository, subscription_id=999, actor=ACTOR, notes="missing"
        )


def test_pending_subscription_does_not_block_type_deletion(
    repository, subscription_type_factory, subscription_factory
):
    basic = subscription_type_factory(name="Basic")
    subscription_factory(
        payment_date=date(2026, 1, 1), status="pending", subscription_type_id=basic.id
    )

    subscriptions.delete_subscription_type(
        repository=repository, type_id=basic.id, actor=ACTOR, today=date(2026, 1, 10)
    )

    assert repository.get_subscription_type(basic.id) is None
