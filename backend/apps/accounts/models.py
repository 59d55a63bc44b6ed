"""
Accounts models - users and company memberships.
"""

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models

from apps.core.models import TimestampedModel


class UserManager(BaseUserManager):
    """Custom manager for User model."""

    def create_user(
        self,
        email: str,
        **extra_fields,
    ) -> "User":
        """Create and return a regular user."""
        if not email:
            raise ValueError("Email is required")

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        # No password - Stytch handles authentication
        user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(
        self,
        email: str,
        **extra_fields,
    ) -> "User":
        """Create and return a Django admin superuser who is also a platform operator."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_super_admin", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Cross-company identity.

    This is AUTH_USER_MODEL. Stytch handles authentication; email is the
    cross-org identifier. ``is_super_admin`` marks platform operators, who
    can work in the control center or enter any company.
    """

    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=255, blank=True)

    is_super_admin = models.BooleanField(
        default=False,
        help_text="Platform operator (control center access)",
    )

    # Django auth compatibility
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(
        default=False,
        help_text="Can access Django admin",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.email


class Membership(TimestampedModel):
    """
    Link between a user and a company.

    Archiving sets is_active=False and frees the seat; removal deletes the
    row. The role is descriptive and never consulted for permissions.
    """

    class Role(models.TextChoices):
        OWNER = "owner", "Owner"
        ADMIN = "admin", "Admin"
        MANAGER = "manager", "Manager"
        OPERATOR = "operator", "Operator"
        VIEWER = "viewer", "Viewer"

    stytch_member_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stytch member_id, e.g. 'member-xxx'",
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    company = models.ForeignKey(
        "companies.Company",
        on_delete=models.CASCADE,
        related_name="memberships",
    )

    role = models.CharField(
        max_length=50,
        choices=Role.choices,
        default=Role.OPERATOR,
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = ["user", "company"]

    def __str__(self) -> str:
        return f"{self.user.email} @ {self.company.name} ({self.role})"
