"""Identity store interface.

The narrow contract the authorization gate and the role-hierarchy
enforcer depend on.  Implementations return ``None`` for missing or
malformed ids rather than raising.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.accounts.models import Identity


class IIdentityStore(IRepository["Identity"]):
    resource_type = "identity"

    @abstractmethod
    def get_active(self, id: Any) -> Optional[Identity]:
        """Retrieve a non-deleted identity, or ``None``."""

    @abstractmethod
    def get_for_update(self, id: Any) -> Optional[Identity]:
        """Retrieve a non-deleted identity holding its row lock."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Identity]:
        """Case-insensitive lookup by email."""

    @abstractmethod
    def email_taken(self, email: str, exclude_id: Any = None) -> bool:
        """``True`` when another identity already uses ``email``."""

    @abstractmethod
    def lock_super_admins(self) -> List[Identity]:
        """Lock and return every non-deleted super admin."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Identity]:
        """List non-deleted identities."""
