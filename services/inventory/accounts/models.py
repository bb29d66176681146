"""Database models for inventory accounts."""
from __future__ import annotations

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.db import models

SMART_CLICK = "Smart Click"
FIELD_ENGINEERING = "F.E."
CUSTOMS = "Customs"

WORKING_GROUP_CHOICES = [
    (SMART_CLICK, "Smart Click"),
    (FIELD_ENGINEERING, "Field Engineering"),
    (CUSTOMS, "Customs"),
]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountManager(BaseUserManager):
    def create_account(self, email: str, password: str, **extra_fields) -> "Account":
        account = self.model(email=normalize_email(email), **extra_fields)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def get_by_natural_key(self, email: str) -> "Account":  # type: ignore[override]
        return self.get(email=normalize_email(email))


class Account(AbstractBaseUser):
    """A person allowed to sign in once an administrator approves them."""

    USER = "user"
    ADMIN = "admin"

    ROLE_CHOICES = [
        (USER, "User"),
        (ADMIN, "Administrator"),
    ]

    email = models.EmailField(unique=True)
    display_name = models.CharField(max_length=255)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=USER)
    working_group = models.CharField(max_length=32, choices=WORKING_GROUP_CHOICES)
    is_approved = models.BooleanField(default=False)
    # Set only on the first account ever registered; unique when true.
    is_bootstrap_admin = models.BooleanField(default=False, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AccountManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["display_name", "working_group"]

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["is_bootstrap_admin"],
                condition=models.Q(is_bootstrap_admin=True),
                name="accounts_single_bootstrap_admin",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.display_name} <{self.email}>"

    @property
    def is_admin(self) -> bool:
        return self.role == self.ADMIN

    def approve(self) -> bool:
        """Flip the approval flag; returns False when already approved."""

        if self.is_approved:
            return False
        self.is_approved = True
        self.save(update_fields=["is_approved", "updated_at"])
        return True
