"""
Notification utilities for Slack and Email alerts.
"""

import logging
from typing import Optional
import httpx
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
import smtplib

from assistlink.core.config import settings

logger = logging.getLogger(__name__)

KIND_LABELS = {
    "blood": "Blood donation",
    "elder_support": "Elder support",
    "complaint": "Complaint",
}


class NotificationService:
    """Service for sending notifications via Slack and Email."""

    @staticmethod
    async def send_slack(message: str, channel: Optional[str] = None):
        """
        Send Slack notification.

        Args:
            message: Message to send
            channel: Optional channel override
        """
        if not settings.SLACK_WEBHOOK_URL:
            logger.warning("Slack webhook URL not configured")
            return

        payload = {"text": message}
        if channel:
            payload["channel"] = channel

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    settings.SLACK_WEBHOOK_URL,
                    json=payload,
                    timeout=10.0,
                )
                response.raise_for_status()
            logger.info("Slack notification sent")
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Slack notification: {e}")

    @staticmethod
    def send_email(
        to: str,
        subject: str,
        body: str,
        html: Optional[str] = None,
    ):
        """
        Send email notification.

        Args:
            to: Recipient email
            subject: Email subject
            body: Plain text body
            html: Optional HTML body
        """
        if not all(
            [
                settings.SMTP_HOST,
                settings.SMTP_USER,
                settings.SMTP_PASSWORD,
            ]
        ):
            logger.warning("SMTP not configured")
            return

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = settings.SMTP_USER
            msg["To"] = to

            # Attach parts
            part1 = MIMEText(body, "plain")
            msg.attach(part1)

            if html:
                part2 = MIMEText(html, "html")
                msg.attach(part2)

            # Send
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                server.starttls()
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.sendmail(settings.SMTP_USER, to, msg.as_string())

            logger.info(f"Email sent to {to}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")

    @staticmethod
    async def notify_urgent_request(kind: str, request_id: str, city: Optional[str] = None):
        """Alert the coordinators' channel about a new urgent request."""
        message = (
            f"🚨 *Urgent {KIND_LABELS.get(kind, kind)} request*\n"
            f"Request: {request_id}\n"
            f"City: {city or 'not given'}"
        )

        await NotificationService.send_slack(message)

    @staticmethod
    def notify_request_committed(
        requester_email: str,
        kind: str,
        volunteer_name: str,
        volunteer_phone: Optional[str] = None,
    ):
        """Tell the requester a volunteer has taken on their request."""
        label = KIND_LABELS.get(kind, kind)
        lines = [
            f"Good news: {volunteer_name} has volunteered for your {label.lower()} request.",
        ]
        if volunteer_phone:
            lines.append(f"You can reach them at {volunteer_phone}.")
        lines.append("Your contact details are now visible to this volunteer.")

        NotificationService.send_email(
            requester_email,
            f"A volunteer is on your {label.lower()} request",
            "\n".join(lines),
        )

    @staticmethod
    def notify_volunteer_assigned(volunteer_email: str, title: str):
        """Tell a volunteer their application was accepted."""
        NotificationService.send_email(
            volunteer_email,
            "You have been assigned a complaint",
            f"Your application for '{title}' was accepted. "
            "The requester's contact details are now available in the app.",
        )
