"""Integration tests for onboarding, profile updates and onboarding listeners"""

import pytest
from prometheus_client import REGISTRY

from consumer_finance.domain.exceptions import Conflict, CryptoFailure, NotFound
from consumer_finance.domain.models import AccountStatus, OnboardingCompleted, ProfileUpdate, VendorStatus
from consumer_finance.infrastructure.crypto.cipher import Cipher
from consumer_finance.infrastructure.database.models import Consumer, PrincipalAccount, VendorLinkedAccount
from consumer_finance.infrastructure.database.repositories import VendorRepository
from consumer_finance.services.accounts import AccountService
from consumer_finance.services.consumers import ConsumerService
from consumer_finance.services.handlers import register_handlers


def test_onboard_encrypts_sensitive_fields(db, cipher, make_request):
    request = make_request(national_id="123-45-6789", employer_name="Initech", monthly_income_cents=650_000)
    profile = ConsumerService(db, cipher).onboard(request)

    stored = db.get(Consumer, profile.id)
    assert stored.national_id != "123-45-6789"
    assert stored.employer_name != "Initech"
    assert stored.monthly_income != "650000"
    assert cipher.decrypt(stored.national_id) == "123-45-6789"
    assert stored.national_id_fingerprint == cipher.fingerprint("123-45-6789")

    assert profile.national_id == "123-45-6789"
    assert profile.employer_name == "Initech"
    assert profile.monthly_income_cents == 650_000
    assert profile.status == AccountStatus.ACTIVE
    assert profile.currency == "USD"


def test_onboard_publishes_completed_event(db, cipher, relay, recorder, make_request):
    relay.subscribe(OnboardingCompleted, recorder)
    profile = ConsumerService(db, cipher, relay).onboard(make_request(first_name="Ada", last_name="Lovelace"))

    [event] = recorder.of_type(OnboardingCompleted)
    assert event.consumer_id == profile.id
    assert event.email == profile.email
    assert event.consumer_name == "Ada Lovelace"
    assert event.source == "api"


@pytest.mark.parametrize("field_name", ["email", "phone", "national_id", "document_number"])
def test_onboard_rejects_duplicate_identifier(db, cipher, relay, recorder, make_request, field_name):
    service = ConsumerService(db, cipher, relay)
    first = make_request()
    service.onboard(first)
    relay.subscribe(OnboardingCompleted, recorder)

    duplicate = make_request(**{field_name: getattr(first, field_name)})
    with pytest.raises(Conflict, match=field_name):
        service.onboard(duplicate)

    assert recorder.events == []
    assert db.query(Consumer).count() == 1


def test_get_unknown_consumer(db, cipher):
    with pytest.raises(NotFound) as exc_info:
        ConsumerService(db, cipher).get("missing")
    assert exc_info.value.entity == "Consumer"


def test_get_with_wrong_key_fails(db, cipher, consumer):
    other = Cipher.from_base64_key(Cipher.generate_new_key())
    with pytest.raises(CryptoFailure):
        ConsumerService(db, other).get(consumer.id)


def test_update_profile_reencrypts(db, cipher, consumer):
    service = ConsumerService(db, cipher)
    before = db.get(Consumer, consumer.id).national_id

    updated = service.update_profile(
        consumer.id,
        ProfileUpdate(first_name="Renamed", national_id="NEW-ID-1", annual_income_cents=9_000_000),
    )

    stored = db.get(Consumer, consumer.id)
    assert updated.first_name == "Renamed"
    assert updated.national_id == "NEW-ID-1"
    assert updated.annual_income_cents == 9_000_000
    assert updated.email == consumer.email
    assert stored.national_id != before
    assert stored.national_id_fingerprint == cipher.fingerprint("NEW-ID-1")


def test_update_profile_rejects_taken_email(db, cipher, consumer, make_request):
    service = ConsumerService(db, cipher)
    other = service.onboard(make_request())

    with pytest.raises(Conflict, match="email"):
        service.update_profile(other.id, ProfileUpdate(email=consumer.email))


def test_update_profile_keeps_own_email(db, cipher, consumer):
    updated = ConsumerService(db, cipher).update_profile(consumer.id, ProfileUpdate(email=consumer.email))
    assert updated.email == consumer.email


def test_clearing_phone_stores_null_for_every_consumer(db, cipher, consumer, make_request):
    service = ConsumerService(db, cipher)
    other = service.onboard(make_request())

    assert service.update_profile(consumer.id, ProfileUpdate(phone="")).phone is None
    assert service.update_profile(other.id, ProfileUpdate(phone="")).phone is None
    assert db.get(Consumer, other.id).phone is None


def test_archive_is_soft_and_idempotent(db, cipher, consumer):
    service = ConsumerService(db, cipher)

    assert service.archive(consumer.id).status == AccountStatus.ARCHIVED
    assert service.archive(consumer.id).status == AccountStatus.ARCHIVED
    assert db.get(Consumer, consumer.id) is not None

    with pytest.raises(Conflict, match="archived"):
        service.update_profile(consumer.id, ProfileUpdate(first_name="Nope"))


def test_onboarding_provisions_principal_and_vendor_accounts(
    db, cipher, relay, session_factory, vendors, make_request
):
    register_handlers(relay, session_factory)
    profile = ConsumerService(db, cipher, relay).onboard(make_request())

    principal = db.query(PrincipalAccount).filter_by(consumer_id=profile.id).one()
    assert principal.account_type == "PRIMARY"
    assert principal.status == AccountStatus.ACTIVE

    links = db.query(VendorLinkedAccount).filter_by(consumer_id=profile.id).all()
    assert {link.vendor_id for link in links} == {v.id for v in vendors}
    assert all(link.principal_account_id == principal.id for link in links)


def test_vendor_failure_does_not_block_onboarding_or_other_vendors(
    db, cipher, relay, session_factory, vendors, make_request, monkeypatch
):
    failing_vendor_id = vendors[0].id
    original = AccountService.link_vendor_account

    def flaky_link(self, consumer_id, vendor_id, **kwargs):
        if vendor_id == failing_vendor_id:
            raise RuntimeError("vendor outage")
        return original(self, consumer_id, vendor_id, **kwargs)

    monkeypatch.setattr(AccountService, "link_vendor_account", flaky_link)
    register_handlers(relay, session_factory)
    failures_before = _vendor_link_failures()

    profile = ConsumerService(db, cipher, relay).onboard(make_request())

    links = db.query(VendorLinkedAccount).filter_by(consumer_id=profile.id).all()
    assert [link.vendor_id for link in links] == [vendors[1].id]
    assert db.query(PrincipalAccount).filter_by(consumer_id=profile.id).count() == 1
    assert _vendor_link_failures() == failures_before + 1


def test_inactive_vendors_are_skipped(db, cipher, relay, session_factory, make_request):
    repo = VendorRepository(db)
    active = repo.add("Active Vendor")
    repo.add("Dormant Vendor", status=VendorStatus.INACTIVE)
    db.commit()

    register_handlers(relay, session_factory)
    profile = ConsumerService(db, cipher, relay).onboard(make_request())

    links = db.query(VendorLinkedAccount).filter_by(consumer_id=profile.id).all()
    assert [link.vendor_id for link in links] == [active.id]


def _vendor_link_failures() -> float:
    return REGISTRY.get_sample_value("vendor_link_failures_total") or 0.0
