from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import requests

from shoptrack.config import Settings
from shoptrack.domain import aggregates
from shoptrack.domain.errors import AuthorizationError, NotFoundError, ValidationError
from shoptrack.domain.models import TICKET_STATUSES, SupportTicket, TenantOverview

log = logging.getLogger("shoptrack.admin")

URGENT_KEYWORDS = ("urgent", "priority", "asap", "emergency")


@dataclass
class AdminSession:
    token: str
    email: str
    active: bool = True

    def revoke(self) -> None:
        self.active = False


class AdminAuthClient:
    """Validates admin credentials and hands back a session token.

    With ``admin_auth_url`` configured the check happens remotely; otherwise
    the configured admin email/password pair is used.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _post_json(self, url: str, payload: dict) -> tuple[int, dict]:
        r = requests.post(url, json=payload, timeout=10)
        try:
            data = r.json()
        except ValueError:
            data = {}
        return r.status_code, data if isinstance(data, dict) else {}

    def login(self, email: str, password: str) -> Optional[AdminSession]:
        email_clean = (email or "").strip().lower()
        url = self.settings.admin_auth_url
        if url:
            try:
                status, data = self._post_json(url, {"email": email_clean, "password": password})
            except requests.RequestException as e:
                log.warning("admin_login_failed reason=request_error error=%s", e)
                return None
            token = data.get("token")
            if 200 <= status < 300 and data.get("success") and token:
                return AdminSession(token=str(token), email=email_clean)
            log.warning("admin_login_rejected status=%s", status)
            return None

        expected_email = (self.settings.admin_email or "").strip().lower()
        expected_password = self.settings.admin_password or ""
        if not expected_email or not expected_password:
            log.error("admin_login_failed reason=no_admin_credentials_configured")
            return None
        email_ok = hmac.compare_digest(email_clean.encode("utf-8"), expected_email.encode("utf-8"))
        password_ok = hmac.compare_digest((password or "").encode("utf-8"), expected_password.encode("utf-8"))
        if not (email_ok and password_ok):
            log.warning("admin_login_rejected reason=bad_credentials")
            return None
        return AdminSession(token=secrets.token_urlsafe(32), email=email_clean)


class AdminService:
    def __init__(self, repo, auth_client: AdminAuthClient, page_size: int = aggregates.DEFAULT_PAGE_SIZE):
        self.repo = repo
        self.auth_client = auth_client
        self.page_size = page_size

    def login(self, email: str, password: str) -> Optional[AdminSession]:
        session = self.auth_client.login(email, password)
        if session is not None:
            log.info("admin_logged_in email=%s", session.email)
        return session

    def logout(self, session: AdminSession) -> None:
        session.revoke()
        log.info("admin_logged_out email=%s", session.email)

    @staticmethod
    def _require(session: Optional[AdminSession]) -> None:
        if session is None or not session.active or not session.token:
            raise AuthorizationError("Admin authentication required.")

    # ---------- tenants ----------
    def list_tenants(self, session: AdminSession, page: int = 1) -> aggregates.Page:
        self._require(session)
        return aggregates.paginate(self.repo.list_tenants(), page, self.page_size)

    def tenant_overview(self, session: AdminSession, tenant_id: int) -> TenantOverview:
        self._require(session)
        tenant = self.repo.get_tenant(int(tenant_id))
        if not tenant:
            raise NotFoundError("Tenant not found.")
        products_count, sales_count, revenue = self.repo.tenant_stats(tenant.id)
        return TenantOverview(
            tenant=tenant,
            products_count=products_count,
            sales_count=sales_count,
            total_revenue=revenue,
        )

    def signups_per_day(self, session: AdminSession, days: int = 7, today: Optional[date] = None) -> list[tuple[date, int]]:
        self._require(session)
        today = today or datetime.now(timezone.utc).date()
        window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        counts = {d: 0 for d in window}
        for tenant in self.repo.list_tenants():
            d = tenant.created_at.date()
            if d in counts:
                counts[d] += 1
        return [(d, counts[d]) for d in window]

    # ---------- support tickets ----------
    def list_tickets(self, session: AdminSession, page: int = 1) -> aggregates.Page:
        self._require(session)
        return aggregates.paginate(self.repo.list_tickets(), page, self.page_size)

    def update_ticket_status(self, session: AdminSession, ticket_id: int, status: str) -> SupportTicket:
        self._require(session)
        if status not in TICKET_STATUSES:
            raise ValidationError(f"Unknown ticket status: {status}")
        if not self.repo.update_ticket_status(int(ticket_id), status):
            raise NotFoundError("Ticket not found.")
        log.info("ticket_status_updated ticket_id=%s status=%s", ticket_id, status)
        return self.repo.get_ticket(int(ticket_id))

    @staticmethod
    def is_urgent(ticket: SupportTicket) -> bool:
        text = f"{ticket.subject} {ticket.message}".lower()
        return any(word in text for word in URGENT_KEYWORDS)
