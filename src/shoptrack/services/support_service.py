from __future__ import annotations

import logging

from shoptrack.domain.errors import AuthorizationError, ValidationError
from shoptrack.domain.models import SupportTicket
from shoptrack.services.auth_service import TenantSession

log = logging.getLogger(__name__)


class SupportService:
    def __init__(self, repo):
        self.repo = repo

    def submit_ticket(self, session: TenantSession, subject: str, message: str) -> SupportTicket:
        if not session.active:
            raise AuthorizationError("Please sign in to contact support.")
        subject_clean = (subject or "").strip()
        message_clean = (message or "").strip()
        if not subject_clean or not message_clean:
            raise ValidationError("Please fill in all fields.")

        tenant = session.tenant
        ticket = self.repo.create_ticket(
            tenant.id,
            tenant.email,
            tenant.display_name or tenant.email,
            subject_clean,
            message_clean,
        )
        log.info("ticket_submitted ticket_id=%s tenant=%s", ticket.id, tenant.id)
        return ticket
