from __future__ import annotations

import pytest
from django.utils import timezone

from modules.accounts.dtos import RegisterIdentityDTO, UpdateProfileDTO
from modules.accounts.exceptions import EmailAlreadyRegistered
from modules.accounts.models import AuthProvider, Role
from modules.accounts.services import IdentityService
from modules.core.exceptions import InvalidRequest, InvalidSession
from tests.factories import PASSWORD
from tests.fakes import FakeUnitOfWork, InMemoryIdentityStore, RecordingAuditSink

pytestmark = pytest.mark.unit


@pytest.fixture()
def identities():
    return InMemoryIdentityStore()


@pytest.fixture()
def audit():
    return RecordingAuditSink()


@pytest.fixture()
def service(identities, audit):
    return IdentityService(identities, FakeUnitOfWork(identities), audit)


class TestRegister:
    def test_creates_user_role(self, service, audit):
        identity = service.register(
            RegisterIdentityDTO(name="Kat", email="kat@example.com", password=PASSWORD)
        )
        assert identity.role == Role.USER
        assert identity.check_password(PASSWORD)
        assert audit.actions() == ["user_registered"]

    def test_email_is_unique(self, service, identities):
        identities.add("Kat", "kat@example.com")
        with pytest.raises(EmailAlreadyRegistered):
            service.register(
                RegisterIdentityDTO(name="Kat", email="KAT@example.com", password=PASSWORD)
            )

    def test_weak_password(self, service, identities):
        with pytest.raises(InvalidRequest) as exc_info:
            service.register(
                RegisterIdentityDTO(name="Kat", email="kat@example.com", password="password")
            )
        assert exc_info.value.code == "weak_password"
        assert identities.get_by_email("kat@example.com") is None


class TestUpdateProfile:
    def test_only_changed_fields_are_audited(self, service, identities, audit):
        identity = identities.add("Ada", "ada@example.com")
        service.update_profile(identity, UpdateProfileDTO(name="Ada", email="ada@example.com"))
        assert audit.records == []

        service.update_profile(identity, UpdateProfileDTO(name="Ada L."))
        (record,) = audit.find("profile_updated")
        assert record.context["fields"] == ["name"]

    def test_external_identity_has_no_password(self, service, identities):
        identity = identities.add("Ada", "ada@example.com")
        identity.auth_provider = AuthProvider.GOOGLE
        with pytest.raises(InvalidRequest) as exc_info:
            service.update_profile(identity, UpdateProfileDTO(password=PASSWORD))
        assert exc_info.value.code == "external_identity"


class TestExternalIdentity:
    def test_first_login_creates_identity(self, service, audit):
        identity = service.resolve_external_identity("Lin@Example.com", "", AuthProvider.GITHUB)

        assert identity.email.lower() == "lin@example.com"
        assert identity.name == "Lin"
        assert identity.auth_provider == AuthProvider.GITHUB
        assert not identity.has_usable_password()
        (record,) = audit.find("user_registered")
        assert record.context["provider"] == "github"

    def test_later_logins_reuse_identity(self, service, identities):
        existing = identities.add("Lin", "lin@example.com")
        assert service.resolve_external_identity("lin@example.com", "Lin", "google") is existing

    def test_deleted_identity_is_refused(self, service, identities):
        existing = identities.add("Lin", "lin@example.com")
        existing.deleted_at = timezone.now()
        with pytest.raises(InvalidSession):
            service.resolve_external_identity("lin@example.com", "Lin", "google")

    @pytest.mark.parametrize("provider", ["credentials", "myspace"])
    def test_unsupported_provider(self, service, provider):
        with pytest.raises(InvalidRequest):
            service.resolve_external_identity("lin@example.com", "Lin", provider)
