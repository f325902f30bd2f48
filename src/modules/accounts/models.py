"""Identity model: the storefront's user account.

Business rules implemented:
- Email is unique and stored lowercase.
- Roles form a total order (``USER < ADMIN < SUPER_ADMIN``); privilege
  checks compare against that order instead of independent flags.
- Externally-authenticated identities carry an unusable password.
- Identities are never hard-deleted.  Deletion anonymizes the email and
  sets ``deleted_at`` / ``deleted_by`` (see ``RoleHierarchyEnforcer``).
- A soft-deleted identity is inactive and cannot log in.
"""

from __future__ import annotations

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.db import models

from modules.core.models import SoftDeleteModel, SoftDeleteQuerySet


class Role(models.IntegerChoices):
    USER = 0, "User"
    ADMIN = 1, "Admin"
    SUPER_ADMIN = 2, "Super admin"


class AuthProvider(models.TextChoices):
    CREDENTIALS = "credentials", "Email and password"
    GOOGLE = "google", "Google"
    GITHUB = "github", "GitHub"


class IdentityManager(BaseUserManager.from_queryset(SoftDeleteQuerySet)):
    use_in_migrations = True

    def get_by_natural_key(self, username):
        return self.get(email__iexact=username)

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("An email address is required.")
        identity = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            identity.set_password(password)
        else:
            identity.set_unusable_password()
        identity.save(using=self._db)
        return identity

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields["role"] = Role.SUPER_ADMIN
        return self.create_user(email, password, **extra_fields)


class Identity(AbstractBaseUser, SoftDeleteModel):
    """Storefront account, used as ``AUTH_USER_MODEL``."""

    name = models.CharField(max_length=100)
    email = models.EmailField(max_length=254, unique=True)
    role = models.PositiveSmallIntegerField(choices=Role.choices, default=Role.USER)
    auth_provider = models.CharField(
        max_length=20,
        choices=AuthProvider.choices,
        default=AuthProvider.CREDENTIALS,
    )

    objects = IdentityManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        db_table = "identities"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["role"], name="identities_role_idx"),
        ]

    # ------------------------------------------------------------------
    # Role helpers
    # ------------------------------------------------------------------

    @property
    def is_admin(self) -> bool:
        return self.role >= Role.ADMIN

    @property
    def is_super_admin(self) -> bool:
        return self.role >= Role.SUPER_ADMIN

    @property
    def is_active(self) -> bool:
        return not self.is_deleted

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
