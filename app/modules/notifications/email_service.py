"""
Project invitation emails over SMTP.

Sending is best-effort: callers schedule a batch on FastAPI BackgroundTasks
and the outcome is only logged, never reported back to the request.
"""

import html
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Dict, List, Optional

from fastapi import BackgroundTasks

from app.config import settings as app_settings
from app.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ProjectInvite:
    project_name: str
    project_uuid: str
    inviter_name: str
    description: Optional[str] = None


def inviter_display_name(user_data: dict) -> str:
    return user_data.get("name") or user_data.get("email") or "A team member"


class EmailService:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return f'"{self.settings.app_name}" <{self.settings.email_user}>'

    def project_link(self, project_uuid: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/projects/{project_uuid}"

    def build_invite_message(self, recipient: str, invite: ProjectInvite) -> EmailMessage:
        link = self.project_link(invite.project_uuid)
        app_name = self.settings.app_name

        msg = EmailMessage()
        msg["Subject"] = f'You\'ve been invited to join "{invite.project_name}"'
        msg["From"] = self.sender
        msg["To"] = recipient

        text_lines = [
            "Hi there,",
            "",
            f"{invite.inviter_name} has invited you to join the project: {invite.project_name}",
        ]
        if invite.description:
            text_lines += ["", invite.description]
        text_lines += [
            "",
            f"View the project here: {link}",
            "",
            "If you didn't expect this invitation, you can safely ignore this email.",
        ]
        msg.set_content("\n".join(text_lines))

        description_html = (
            f'<div class="meta">{html.escape(invite.description)}</div>' if invite.description else ""
        )
        msg.add_alternative(
            INVITE_HTML.format(
                inviter=html.escape(invite.inviter_name),
                project=html.escape(invite.project_name),
                description=description_html,
                link=html.escape(link, quote=True),
                app_name=html.escape(app_name),
            ),
            subtype="html",
        )
        return msg

    def _connect(self) -> smtplib.SMTP:
        smtp = smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10)
        smtp.starttls()
        smtp.login(self.settings.email_user, self.settings.email_password)
        return smtp

    def send_batch_project_invites(self, emails: List[str], invite: ProjectInvite) -> Dict[str, int]:
        """Send one invitation per address over a single SMTP session. Returns {successful, failed}."""
        if not emails:
            return {"successful": 0, "failed": 0}
        if not self.settings.email_configured:
            logger.warning(f"Email not configured; skipping {len(emails)} invitation(s) for {invite.project_uuid}")
            return {"successful": 0, "failed": len(emails)}

        successful = 0
        failed = 0
        try:
            with self._connect() as smtp:
                for recipient in emails:
                    try:
                        smtp.send_message(self.build_invite_message(recipient, invite))
                        successful += 1
                        logger.info(f"Invitation sent to {recipient} for project {invite.project_uuid}")
                    except smtplib.SMTPException as e:
                        failed += 1
                        logger.error(f"Error sending invitation to {recipient}: {e}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP session failed: {e}")
            failed = len(emails) - successful

        logger.info(f"Email summary: {successful} sent, {failed} failed")
        return {"successful": successful, "failed": failed}


def send_invites_in_background(service: EmailService, emails: List[str], invite: ProjectInvite) -> None:
    """Background job wrapper; a failed batch must never surface anywhere but the log."""
    try:
        service.send_batch_project_invites(emails, invite)
    except Exception as e:
        logger.exception(f"Invitation batch for project {invite.project_uuid} failed: {e}")


def dispatch_project_invites(
    background_tasks: BackgroundTasks,
    service: EmailService,
    emails: List[str],
    invite: ProjectInvite,
) -> int:
    """Schedule invitations after the response is sent. Returns how many were scheduled."""
    if not emails:
        return 0
    background_tasks.add_task(send_invites_in_background, service, list(emails), invite)
    return len(emails)


def get_email_service() -> EmailService:
    return EmailService(app_settings)


INVITE_HTML = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8" />
    <title>Project Invitation</title>
    <style>
      body {{ margin: 0; padding: 0; background-color: #f6f8fa; font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; color: #24292f; }}
      .wrapper {{ max-width: 640px; margin: 40px auto; padding: 0 16px; }}
      .card {{ background: #ffffff; border: 1px solid #d0d7de; border-radius: 6px; padding: 24px; }}
      h1 {{ font-size: 20px; font-weight: 600; margin: 0 0 16px 0; text-align: center; }}
      p {{ font-size: 14px; line-height: 1.6; margin: 12px 0; }}
      .highlight {{ background-color: #f6f8fa; border: 1px solid #d0d7de; border-radius: 6px; padding: 16px; margin-top: 16px; }}
      .project-name {{ font-weight: 600; margin-bottom: 6px; }}
      .meta {{ font-size: 13px; color: #57606a; }}
      .button {{ background-color: #009bff; color: #ffffff !important; text-decoration: none; padding: 6px 16px; border-radius: 6px; font-size: 14px; display: inline-block; margin-top: 16px; }}
      .footer {{ text-align: center; font-size: 12px; color: #57606a; margin-top: 24px; }}
    </style>
  </head>
  <body>
    <div class="wrapper">
      <div class="card">
        <h1>You've been invited to a project</h1>
        <p>Hi there,</p>
        <p><strong>{inviter}</strong> has invited you to collaborate on a project.</p>
        <div class="highlight">
          <div class="project-name">{project}</div>
          {description}
          <a href="{link}" class="button">Join Project</a>
        </div>
      </div>
      <div class="footer">
        <p>If you didn't expect this invitation, you can safely ignore this email.</p>
        <p>This is an automated message from {app_name}.</p>
      </div>
    </div>
  </body>
</html>
"""
