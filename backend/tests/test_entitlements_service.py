from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from backend.app.entitlements import (
    INVITE_CODE_ALPHABET,
    EntitlementConfig,
    EntitlementService,
    InviteAccessGrant,
    InviteCode,
    SubscriptionRecord,
    compute_expiry,
    generate_invite_code_candidate,
    get_billing_term,
    load_entitlement_config,
)
from backend.app.errors import (
    AuthorizationError,
    ConflictError,
    GenerationError,
    NotFoundError,
    StoreError,
    ValidationError,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
ADMIN = "admin@example.com"


class FakeSubscriptionRepository:
    def __init__(self) -> None:
        self.records: List[SubscriptionRecord] = []
        self.fail = False

    def add(self, **overrides) -> SubscriptionRecord:
        values = dict(
            user_id="user-1",
            tx_ref=f"TGE_{len(self.records)}",
            amount=199,
            billing_cycle="monthly",
            created_at=NOW - timedelta(days=1),
            expires_at=NOW + timedelta(days=29),
        )
        values.update(overrides)
        record = SubscriptionRecord(**values)
        self.records.append(record)
        return record

    def list_active_subscriptions(self, user_id: str, *, at: datetime) -> List[SubscriptionRecord]:
        if self.fail:
            raise StoreError("Database error")
        return [record for record in self.records if record.user_id == user_id and record.status == "active"]


class FakeInviteRepository:
    def __init__(self) -> None:
        self.codes: Dict[str, InviteCode] = {}
        self.grants: List[InviteAccessGrant] = []
        self.rival_redeemer: Optional[str] = None
        self.lose_insert_race = 0

    def get_active_invite_access(self, user_id: str, *, at: datetime) -> Optional[InviteAccessGrant]:
        for grant in reversed(self.grants):
            if grant.user_id == user_id and grant.is_active and grant.expires_at >= at:
                return grant
        return None

    def invite_code_exists(self, code: str) -> bool:
        return code in self.codes

    def create_invite_code(self, invite: InviteCode) -> Optional[InviteCode]:
        if self.lose_insert_race:
            self.lose_insert_race -= 1
            return None
        stored = invite.model_copy(update={"id": f"invite-{len(self.codes) + 1}"})
        self.codes[stored.code] = stored
        return stored

    def list_invite_codes(self) -> List[InviteCode]:
        return sorted(self.codes.values(), key=lambda invite: invite.created_at, reverse=True)

    def get_invite_code(self, code: str) -> Optional[InviteCode]:
        return self.codes.get(code)

    def redeem_invite_code(
        self,
        invite_code_id: str,
        *,
        user_id: str,
        redeemed_at: datetime,
        access_expires_at: datetime,
    ) -> Optional[InviteAccessGrant]:
        if self.rival_redeemer is not None:
            # Another request commits its redemption between our read and our write.
            rival, self.rival_redeemer = self.rival_redeemer, None
            self.redeem_invite_code(
                invite_code_id, user_id=rival, redeemed_at=redeemed_at, access_expires_at=access_expires_at
            )

        matched = next((invite for invite in self.codes.values() if invite.id == invite_code_id), None)
        if (
            matched is None
            or matched.used_by is not None
            or not matched.is_active
            or matched.expires_at < redeemed_at
        ):
            return None
        self.codes[matched.code] = matched.model_copy(update={"used_by": user_id, "used_at": redeemed_at})
        grant = InviteAccessGrant(
            id=f"grant-{len(self.grants) + 1}",
            user_id=user_id,
            invite_code_id=invite_code_id,
            expires_at=access_expires_at,
            created_at=redeemed_at,
        )
        self.grants.append(grant)
        return grant

    def seed(self, code: str, **overrides) -> InviteCode:
        values = dict(
            id=f"invite-{len(self.codes) + 1}",
            code=code,
            created_by="admin-1",
            expires_at=NOW + timedelta(days=30),
            created_at=NOW - timedelta(days=1),
        )
        values.update(overrides)
        invite = InviteCode(**values)
        self.codes[code] = invite
        return invite


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def subscriptions() -> FakeSubscriptionRepository:
    return FakeSubscriptionRepository()


@pytest.fixture
def invites() -> FakeInviteRepository:
    return FakeInviteRepository()


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def service(subscriptions, invites, clock) -> EntitlementService:
    return EntitlementService(
        subscriptions,
        invites,
        EntitlementConfig(admin_emails=frozenset({ADMIN})),
        clock=clock,
    )


def test_has_access_without_grants_is_a_normal_negative(service):
    status = service.has_access("user-1")

    assert status.has_access is False
    assert status.active_monthly is False
    assert status.active_six_months is False
    assert status.has_invite_access is False
    assert status.subscriptions == ()
    assert status.invite_access is None


def test_has_access_requires_user_id(service):
    with pytest.raises(ValidationError):
        service.has_access("")
    with pytest.raises(ValidationError):
        service.has_access(None)


def test_subscription_grants_access_up_to_and_including_expiry(service, subscriptions, clock):
    subscriptions.add(expires_at=NOW)

    assert service.has_access("user-1").has_access is True

    clock.now = NOW + timedelta(microseconds=1)
    assert service.has_access("user-1").has_access is False


def test_invite_grant_alone_gives_access(service, invites):
    invites.grants.append(
        InviteAccessGrant(user_id="user-1", invite_code_id="invite-1", expires_at=NOW + timedelta(hours=1))
    )

    status = service.has_access("user-1")

    assert status.has_access is True
    assert status.has_invite_access is True
    assert status.active_monthly is False


def test_inactive_or_expired_grants_do_not_count(service, subscriptions, invites):
    subscriptions.add(status="cancelled")
    subscriptions.add(expires_at=NOW - timedelta(seconds=1))
    invites.grants.append(
        InviteAccessGrant(user_id="user-1", expires_at=NOW - timedelta(seconds=1))
    )

    assert service.has_access("user-1").has_access is False


def test_has_access_reports_both_billing_cycles(service, subscriptions):
    subscriptions.add(billing_cycle="monthly")
    subscriptions.add(billing_cycle="six_months", expires_at=NOW + timedelta(days=100))

    status = service.has_access("user-1")

    assert status.active_monthly is True
    assert status.active_six_months is True
    assert len(status.subscriptions) == 2


def test_has_access_propagates_store_errors(service, subscriptions):
    subscriptions.fail = True

    with pytest.raises(StoreError):
        service.has_access("user-1")


def test_generate_invite_code_requires_admin(service):
    with pytest.raises(AuthorizationError):
        service.generate_invite_code(requester_id="user-1", requester_email="someone@example.com")
    with pytest.raises(AuthorizationError):
        service.generate_invite_code(requester_id="user-1", requester_email=None)


def test_admin_match_is_case_insensitive(service, invites):
    invite = service.generate_invite_code(requester_id="admin-1", requester_email="Admin@Example.COM")

    assert invite.code in invites.codes
    assert invite.created_by == "admin-1"


def test_generated_code_shape_and_expiry(service):
    invite = service.generate_invite_code(requester_id="admin-1", requester_email=ADMIN)

    assert len(invite.code) == 8
    assert set(invite.code) <= set(INVITE_CODE_ALPHABET)
    assert invite.expires_at == NOW + timedelta(days=30)
    assert invite.created_at == NOW
    assert invite.used_by is None
    assert invite.is_active is True


def test_generate_retries_collisions(subscriptions, invites, clock):
    invites.seed("AAAAAAAA")
    candidates = iter(["AAAAAAAA", "BBBBBBBB"])
    service = EntitlementService(
        subscriptions,
        invites,
        EntitlementConfig(admin_emails=frozenset({ADMIN})),
        clock=clock,
        code_factory=lambda length: next(candidates),
    )

    invite = service.generate_invite_code(requester_id="admin-1", requester_email=ADMIN)

    assert invite.code == "BBBBBBBB"


def test_generate_counts_lost_inserts_as_collisions(subscriptions, invites, clock):
    invites.lose_insert_race = 1
    candidates = iter(["CCCCCCCC", "DDDDDDDD"])
    service = EntitlementService(
        subscriptions,
        invites,
        EntitlementConfig(admin_emails=frozenset({ADMIN})),
        clock=clock,
        code_factory=lambda length: next(candidates),
    )

    invite = service.generate_invite_code(requester_id="admin-1", requester_email=ADMIN)

    assert invite.code == "DDDDDDDD"


def test_generate_gives_up_after_max_attempts(subscriptions, invites, clock):
    invites.seed("AAAAAAAA")
    calls = []

    def factory(length: int) -> str:
        calls.append(length)
        return "AAAAAAAA"

    service = EntitlementService(
        subscriptions,
        invites,
        EntitlementConfig(admin_emails=frozenset({ADMIN})),
        clock=clock,
        code_factory=factory,
    )

    with pytest.raises(GenerationError):
        service.generate_invite_code(requester_id="admin-1", requester_email=ADMIN)
    assert len(calls) == 10


def test_list_invite_codes_newest_first_and_admin_only(service, invites):
    invites.seed("OLDER000", created_at=NOW - timedelta(days=3))
    invites.seed("NEWER000", created_at=NOW - timedelta(hours=1))

    listed = service.list_invite_codes(requester_email=ADMIN)

    assert [invite.code for invite in listed] == ["NEWER000", "OLDER000"]
    with pytest.raises(AuthorizationError):
        service.list_invite_codes(requester_email="user@example.com")


def test_redeem_grants_three_days_of_access(service, invites):
    invites.seed("ABCD1234")

    redemption = service.redeem_invite_code(user_id="user-2", code="abcd1234")

    assert redemption.access_expires_at == NOW + timedelta(days=3)
    assert invites.codes["ABCD1234"].used_by == "user-2"
    assert invites.codes["ABCD1234"].used_at == NOW
    assert service.has_access("user-2").has_invite_access is True


def test_redeem_reports_existing_grant_before_code_problems(service, invites):
    invites.grants.append(InviteAccessGrant(user_id="user-2", expires_at=NOW + timedelta(days=1)))

    with pytest.raises(ConflictError) as exc:
        service.redeem_invite_code(user_id="user-2", code="MISSING0")

    assert exc.value.code == "invite_access_active"
    assert exc.value.status_code == 400


def test_redeem_unknown_or_inactive_code_is_not_found(service, invites):
    invites.seed("INACTIVE", is_active=False)

    with pytest.raises(NotFoundError):
        service.redeem_invite_code(user_id="user-2", code="MISSING0")
    with pytest.raises(NotFoundError):
        service.redeem_invite_code(user_id="user-2", code="INACTIVE")


def test_redeem_used_code_is_a_conflict(service, invites):
    invites.seed("USED0000", used_by="user-9", used_at=NOW - timedelta(hours=2))

    with pytest.raises(ConflictError) as exc:
        service.redeem_invite_code(user_id="user-2", code="USED0000")

    assert exc.value.code == "invite_used"


def test_redeem_code_valid_at_its_expiry_instant(service, invites, clock):
    invites.seed("EDGE0000", expires_at=NOW)

    assert service.redeem_invite_code(user_id="user-2", code="EDGE0000").user_id == "user-2"

    invites.seed("LATE0000", expires_at=NOW - timedelta(microseconds=1))
    with pytest.raises(ConflictError) as exc:
        service.redeem_invite_code(user_id="user-3", code="LATE0000")
    assert exc.value.code == "invite_expired"


def test_redeem_lost_race_is_a_conflict(service, invites):
    invites.seed("RACE0000")
    invites.rival_redeemer = "user-3"

    with pytest.raises(ConflictError) as exc:
        service.redeem_invite_code(user_id="user-2", code="RACE0000")

    assert exc.value.code == "invite_used"
    assert invites.codes["RACE0000"].used_by == "user-3"
    assert [grant.user_id for grant in invites.grants] == ["user-3"]


def test_invite_code_is_single_use(subscriptions, invites, clock):
    service = EntitlementService(
        subscriptions,
        invites,
        EntitlementConfig(admin_emails=frozenset({ADMIN})),
        clock=clock,
        code_factory=lambda length: "AB12CD34",
    )
    service.generate_invite_code(requester_id="admin-1", requester_email=ADMIN)

    first = service.redeem_invite_code(user_id="u1", code="AB12CD34")
    clock.now = NOW + timedelta(minutes=5)
    with pytest.raises(ConflictError) as exc:
        service.redeem_invite_code(user_id="u2", code="AB12CD34")

    assert first.user_id == "u1"
    assert exc.value.code == "invite_used"
    assert invites.codes["AB12CD34"].used_by == "u1"
    assert invites.codes["AB12CD34"].used_at == NOW
    assert [grant.user_id for grant in invites.grants] == ["u1"]
    assert service.has_access("u2").has_access is False


def test_expired_grant_no_longer_blocks_redemption(service, invites, clock):
    invites.grants.append(InviteAccessGrant(user_id="user-2", expires_at=NOW - timedelta(seconds=1)))
    invites.seed("AGAIN000")

    redemption = service.redeem_invite_code(user_id="user-2", code="AGAIN000")

    assert redemption.access_expires_at == NOW + timedelta(days=3)


def test_redeem_requires_code(service):
    with pytest.raises(ValidationError):
        service.redeem_invite_code(user_id="user-2", code="  ")


def test_candidate_generator_uses_uppercase_alphanumerics():
    for _ in range(50):
        candidate = generate_invite_code_candidate()
        assert len(candidate) == 8
        assert candidate.isupper() or candidate.isdigit()
        assert set(candidate) <= set(INVITE_CODE_ALPHABET)


def test_billing_terms_use_one_rule_for_every_path():
    assert compute_expiry("monthly", NOW) == NOW + timedelta(days=30)
    assert compute_expiry("six_months", NOW) == NOW + timedelta(days=183)
    assert get_billing_term("annual").term_days == 183


def test_load_entitlement_config_parses_admin_list():
    config = load_entitlement_config(
        env={"ADMIN_EMAILS": " Boss@Example.com, ops@example.com ,", "INVITE_ACCESS_TTL_DAYS": "5"}
    )

    assert config.is_admin("boss@example.com")
    assert config.is_admin("OPS@example.com")
    assert not config.is_admin("")
    assert config.invite_access_ttl_days == 5


def test_load_entitlement_config_rejects_bad_numbers():
    with pytest.raises(ValueError):
        load_entitlement_config(env={"INVITE_CODE_TTL_DAYS": "soon"})
