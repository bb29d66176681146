"""Registration, login and approval rules for inventory accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Optional

from django.contrib.auth import password_validation
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from rest_framework_simplejwt.tokens import AccessToken

from inventory_service.exceptions import (
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    NotFound,
    PendingApproval,
    ValidationError,
)

from .models import Account, normalize_email

logger = logging.getLogger(__name__)

ADMIN_CREATED_MESSAGE = "Admin account created successfully."
PENDING_MESSAGE = "Registration successful. Waiting for admin approval."


@dataclass(frozen=True)
class RegistrationResult:
    account: Account

    @property
    def is_admin(self) -> bool:
        return self.account.is_admin

    @property
    def message(self) -> str:
        return ADMIN_CREATED_MESSAGE if self.is_admin else PENDING_MESSAGE


@dataclass(frozen=True)
class AuthResult:
    account: Account
    token: str
    expires_at: datetime


def _insert_account(email: str, password: str, **fields: Any) -> Optional[Account]:
    """Create an account, returning None if the bootstrap slot was taken meanwhile."""

    try:
        with transaction.atomic():
            return Account.objects.create_account(email, password, **fields)
    except IntegrityError as exc:
        if Account.objects.filter(email=email).exists():
            raise DuplicateEmail(identifier=email) from exc
        if fields.get("is_bootstrap_admin"):
            return None
        raise


def _validate_registration(candidate: Account, password: str) -> None:
    errors: Dict[str, List[str]] = {}
    try:
        candidate.full_clean(exclude=["password"], validate_unique=False, validate_constraints=False)
    except DjangoValidationError as exc:
        errors.update(exc.message_dict)
    try:
        password_validation.validate_password(password, user=candidate)
    except DjangoValidationError as exc:
        errors["password"] = list(exc.messages)
    if errors:
        raise ValidationError(errors)


def register(*, email: str, password: str, display_name: str, working_group: str) -> RegistrationResult:
    """Create an account; the very first one becomes an approved administrator."""

    email = normalize_email(email)
    _validate_registration(
        Account(email=email, display_name=display_name, working_group=working_group),
        password,
    )
    if Account.objects.filter(email=email).exists():
        raise DuplicateEmail(identifier=email)

    profile = {"display_name": display_name, "working_group": working_group}
    account: Optional[Account] = None
    if not Account.objects.exists():
        account = _insert_account(
            email,
            password,
            role=Account.ADMIN,
            is_approved=True,
            is_bootstrap_admin=True,
            **profile,
        )
        if account is None:
            logger.info("Administrator slot claimed concurrently; %s registers as user", email)

    if account is None:
        account = _insert_account(email, password, role=Account.USER, is_approved=False, **profile)
        logger.info("Account %s registered and awaiting approval", account.pk)
    else:
        logger.info("Account %s registered as bootstrap administrator", account.pk)
    return RegistrationResult(account=account)


def login(*, email: str, password: str) -> AuthResult:
    """Verify credentials and issue a 24 hour access token for approved accounts."""

    account = Account.objects.filter(email=normalize_email(email)).first()
    if account is None:
        # Hash anyway so unknown emails cost the same as wrong passwords.
        Account().set_password(password)
        logger.warning("Rejected login for unknown email")
        raise InvalidCredentials()
    if not account.check_password(password):
        logger.warning("Rejected login for account %s", account.pk)
        raise InvalidCredentials()
    if not account.is_approved:
        logger.info("Login refused for unapproved account %s", account.pk)
        raise PendingApproval()

    token = AccessToken.for_user(account)
    expires_at = datetime.fromtimestamp(token["exp"], tz=dt_timezone.utc)
    logger.info("Issued access token for account %s", account.pk)
    return AuthResult(account=account, token=str(token), expires_at=expires_at)


def require_admin(actor: Account) -> None:
    if not getattr(actor, "is_admin", False):
        raise Forbidden()


def list_pending_approvals(actor: Account) -> QuerySet[Account]:
    require_admin(actor)
    return Account.objects.filter(is_approved=False).order_by("created_at", "id")


def approve_account(actor: Account, account_id: Any) -> Account:
    """Approve an account; approving twice is a no-op."""

    require_admin(actor)
    account = Account.objects.filter(pk=account_id).first()
    if account is None:
        raise NotFound(f"User {account_id} not found", identifier=account_id)

    if account.approve():
        logger.info("Account %s approved by %s", account.pk, actor.pk)
    else:
        logger.info("Account %s was already approved", account.pk)
    return account
