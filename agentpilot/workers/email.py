"""Email worker: IMAP reading, SMTP sending."""

import asyncio
import imaplib
import smtplib
import ssl
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parseaddr

from loguru import logger

from agentpilot.config.schema import EmailConfig
from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.workers.base import ActionWorker


class EmailWorker(ActionWorker):
    """
    Read recent mail over IMAP and send mail over SMTP.

    The blocking stdlib clients run in a worker thread.
    """

    type = "email"
    required_level = PermissionLevel.COMMUNICATE

    def __init__(self, config: EmailConfig):
        self.config = config

    async def _op_read_emails(self, request: ActionRequest) -> ActionResult:
        if not self.config.imap_host:
            return ActionResult.fail("IMAP is not configured")
        folder = self._param(request, "folder", "INBOX")
        try:
            limit = max(1, min(int(request.params.get("limit") or 10), 50))
        except (TypeError, ValueError):
            limit = 10
        messages = await asyncio.to_thread(self._fetch_recent, folder, limit)
        return ActionResult.ok({"folder": folder, "emails": messages, "count": len(messages)})

    async def _op_send_email(self, request: ActionRequest) -> ActionResult:
        if not self.config.smtp_host:
            return ActionResult.fail("SMTP is not configured")
        to = self._param(request, "to")
        subject = self._param(request, "subject")
        body = request.params.get("body")
        if not to or not subject or not body:
            return ActionResult.fail("Missing to, subject, or body")
        if "@" not in parseaddr(to)[1]:
            return ActionResult.fail(f"Invalid recipient address: {to}")

        msg = EmailMessage()
        msg["From"] = self.config.from_address or self.config.smtp_username
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        await asyncio.to_thread(self._smtp_send, msg)
        logger.info(f"Email sent to {to}: {subject}")
        return ActionResult.ok({"to": to, "subject": subject, "message": f"Email sent to {to}"})

    def _fetch_recent(self, folder: str, limit: int) -> list[dict]:
        cfg = self.config
        if cfg.imap_use_ssl:
            client = imaplib.IMAP4_SSL(cfg.imap_host, cfg.imap_port)
        else:
            client = imaplib.IMAP4(cfg.imap_host, cfg.imap_port)
        try:
            client.login(cfg.imap_username, cfg.imap_password)
            status, _ = client.select(folder, readonly=True)
            if status != "OK":
                raise RuntimeError(f"Cannot open folder {folder}")
            status, data = client.search(None, "ALL")
            if status != "OK":
                raise RuntimeError(f"Search failed in {folder}")
            ids = data[0].split()[-limit:]

            parser = BytesParser(policy=policy.default)
            results = []
            for msg_id in reversed(ids):
                status, fetched = client.fetch(msg_id, "(RFC822)")
                if status != "OK" or not fetched or not isinstance(fetched[0], tuple):
                    continue
                parsed = parser.parsebytes(fetched[0][1])
                results.append({
                    "id": msg_id.decode(),
                    "from": str(parsed.get("From", "")),
                    "subject": str(parsed.get("Subject", "")),
                    "date": str(parsed.get("Date", "")),
                    "body": self._plain_body(parsed)[: cfg.max_body_chars],
                })
            return results
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError):
                pass

    @staticmethod
    def _plain_body(message) -> str:
        part = message.get_body(preferencelist=("plain", "html"))
        if part is None:
            return ""
        return part.get_content().strip()

    def _smtp_send(self, msg: EmailMessage) -> None:
        cfg = self.config
        if cfg.smtp_use_ssl:
            server = smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port)
        with server:
            if cfg.smtp_use_tls and not cfg.smtp_use_ssl:
                server.starttls(context=ssl.create_default_context())
            if cfg.smtp_username:
                server.login(cfg.smtp_username, cfg.smtp_password)
            server.send_message(msg)

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="read_emails",
                description="Read recent emails from inbox",
                parameters={
                    "type": "object",
                    "properties": {
                        "folder": {"type": "string", "description": "Email folder", "default": "INBOX"},
                        "limit": {"type": "number", "description": "Max emails to return", "default": 10},
                    },
                },
            ),
            ToolDefinition(
                name="send_email",
                description="Send an email to a recipient",
                parameters={
                    "type": "object",
                    "properties": {
                        "to": {"type": "string", "description": "Recipient email address"},
                        "subject": {"type": "string", "description": "Email subject"},
                        "body": {"type": "string", "description": "Email body"},
                    },
                    "required": ["to", "subject", "body"],
                },
            ),
        ]
