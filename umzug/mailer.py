# umzug/mailer.py
"""Send documents to customers by email.

One attempt per call: the result says whether the SMTP relay accepted the
message, and retrying is left to whoever clicked "send".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

import aiosmtplib
from flask import current_app, has_request_context, render_template, request, url_for

from umzug.models import CompanySettings, Document

SUBJECTS = {
    'quote': 'Offerte',
    'receipt': 'Quittung',
    'invoice': 'Rechnung',
}


@dataclass
class MailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _base_url() -> str:
    base = current_app.config.get('PUBLIC_URL')
    if not base and has_request_context():
        base = request.host_url
    return (base or '').rstrip('/')


def document_link(document: Document) -> str:
    """Quotes link to the accept/decline page, everything else to the print view."""
    if document.document_type == 'quote':
        path = url_for('public.view_offer', token=document.public_token)
    else:
        path = url_for('public.print_document', token=document.public_token)
    return f"{_base_url()}{path}"


def build_message(document: Document, recipient: str, company: CompanySettings) -> EmailMessage:
    label = SUBJECTS.get(document.document_type, 'Dokument')
    context = {
        'document': document,
        'company': company,
        'label': label,
        'link': document_link(document),
    }
    msg = EmailMessage()
    msg['From'] = current_app.config['MAIL_FROM']
    msg['To'] = recipient
    msg['Subject'] = f"{label} {document.document_number} - {company.company_name}"
    msg['Message-ID'] = make_msgid(domain=msg['From'].split('@')[-1])
    msg.set_content(render_template('email/document.txt', **context))
    msg.add_alternative(render_template('email/document.html', **context), subtype='html')
    return msg


async def _send_async(msg: EmailMessage, cfg) -> None:
    await aiosmtplib.send(
        msg,
        hostname=cfg['SMTP_HOST'],
        port=cfg['SMTP_PORT'],
        username=cfg.get('SMTP_USERNAME'),
        password=cfg.get('SMTP_PASSWORD'),
        use_tls=cfg.get('SMTP_USE_TLS', True),
        timeout=cfg.get('SMTP_TIMEOUT', 30),
    )


def send_document_email(document: Document, recipient: str) -> MailResult:
    """Email ``document`` to ``recipient`` and report the outcome."""
    msg = build_message(document, recipient, CompanySettings.current())
    try:
        asyncio.run(_send_async(msg, current_app.config))
    except (aiosmtplib.SMTPException, OSError) as exc:
        logging.error(
            "failed to send %s %s to %s: %s",
            document.document_type, document.document_number, recipient, exc,
        )
        return MailResult(success=False, error=str(exc))
    logging.info(
        "sent %s %s to %s", document.document_type, document.document_number, recipient
    )
    return MailResult(success=True, message_id=msg['Message-ID'])
