"""Identity store package."""

from modules.accounts.repositories.django_repository import IdentityDjangoRepository
from modules.accounts.repositories.interfaces import IIdentityStore

__all__ = ["IIdentityStore", "IdentityDjangoRepository"]
