from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import re
from typing import Optional

from shoptrack.config import Settings
from shoptrack.domain.errors import AuthorizationError, ValidationError
from shoptrack.domain.models import Tenant

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginPolicy:
    min_password_length: int = 6
    max_failed_attempts: int = 5
    lockout_seconds: int = 60


@dataclass
class TenantSession:
    """The signed-in business, passed explicitly to whatever needs it.

    ``sign_out`` revokes it. A live cache built on a revoked session drops
    its data and support tickets are refused for it.
    """

    tenant: Tenant
    active: bool = True

    @property
    def tenant_id(self) -> int:
        return self.tenant.id

    def revoke(self) -> None:
        self.active = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuthService:
    def __init__(self, repo, settings: Settings | None = None, policy: LoginPolicy | None = None):
        self.repo = repo
        self.settings = settings or Settings()
        self.policy = policy or LoginPolicy()

    def sign_up(self, email: str, password: str, display_name: str, business_name: Optional[str] = None) -> TenantSession:
        if not self.settings.allow_new_signups:
            raise AuthorizationError("New registrations are currently disabled.")

        email_clean = (email or "").strip().lower()
        name = (display_name or "").strip()
        business = (business_name or "").strip() or None
        if not EMAIL_RE.match(email_clean) or len(email_clean) > 255:
            raise ValidationError("Please enter a valid email.")
        if not name:
            raise ValidationError("Display name is required.")
        if len(password or "") < self.policy.min_password_length:
            raise ValidationError(f"Password must have at least {self.policy.min_password_length} characters.")
        if self.repo.get_tenant_by_email(email_clean):
            raise ValidationError("An account with this email already exists.")

        tenant = self.repo.create_tenant(email_clean, password, name, business)
        log.info("tenant_signed_up tenant=%s", tenant.id)
        return TenantSession(tenant)

    def sign_in(self, email: str, password: str) -> TenantSession:
        email_clean = (email or "").strip().lower()
        if not email_clean:
            raise AuthorizationError("Email is required.")

        state = self.repo.get_tenant_security_state(email_clean)
        if state:
            _attempts, locked_until = state
            if locked_until:
                until = datetime.fromisoformat(locked_until)
                if _utcnow() < until:
                    remaining = int((until - _utcnow()).total_seconds())
                    raise AuthorizationError(f"Account is temporarily locked. Retry in {remaining}s.")

        tenant = self.repo.authenticate_tenant(email_clean, password or "")
        if not tenant:
            attempts, locked_until = self.repo.record_login_failure(
                email_clean,
                self.policy.max_failed_attempts,
                self.policy.lockout_seconds,
            )
            if locked_until is not None:
                raise AuthorizationError("Too many failed attempts. Account is temporarily locked.")
            raise AuthorizationError("Invalid email or password.")

        self.repo.clear_login_guard(tenant.id)
        log.info("tenant_signed_in tenant=%s", tenant.id)
        return TenantSession(tenant)

    def sign_out(self, session: TenantSession) -> None:
        session.revoke()
        log.info("tenant_signed_out tenant=%s", session.tenant_id)
