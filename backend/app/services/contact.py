"""
Contact form pipeline.

  validate_submission(raw)            -> ContactSubmission   (SubmissionInvalid)
  build_template_variables(...)       -> dict of {{PLACEHOLDER}} values
  ContactService.submit(submission)   -> sends notification + auto-reply

submit() is strictly sequential and single-attempt:

  load 4 templates -> render 2 pairs -> verify transport
  -> send notification to owner -> send auto-reply to visitor

Any failure aborts the remaining steps. If the notification goes out and the
auto-reply fails, the request still fails as a whole; nothing is rolled back
and the owner keeps the notification.
"""

import html
import logging
import re
from datetime import datetime, timezone
from email.utils import formataddr
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from app.config import Settings
from app.errors import SubmissionInvalid, TemplateNotFound
from app.models.contact import ContactSubmission, OutboundMail
from app.services.mailer import MailDispatcher
from app.services.templates import TemplateStore, render_template

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATE = "notification"
AUTO_REPLY_TEMPLATE = "auto-reply"

MISSING_FIELDS_MESSAGE = "Please fill in all required fields (name, email, message)."
INVALID_EMAIL_MESSAGE = "Please enter a valid email address."
SUCCESS_MESSAGE = "Thank you for your message! I'll get back to you within 24 hours."

NO_BUDGET = "Not specified"
NO_BUDGET_SUBJECT = "Budget TBD"

# local-part@domain.tld, no whitespace and a single @
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _header_text(value: str) -> str:
    # Header values may not contain CR/LF; collapse all whitespace runs
    return " ".join(value.split())


def validate_submission(raw: Mapping[str, Any]) -> ContactSubmission:
    """
    Validate raw form/JSON fields.

    Raises:
        SubmissionInvalid: name, email or message missing/blank, or the
            email does not look like local@domain.tld.
    """
    name = _clean(raw.get("name"))
    email = _clean(raw.get("email"))
    message = _clean(raw.get("message"))

    if not name or not email or not message:
        raise SubmissionInvalid(MISSING_FIELDS_MESSAGE)

    if not EMAIL_RE.match(email):
        raise SubmissionInvalid(INVALID_EMAIL_MESSAGE, detail=f"Rejected email {email!r}")

    return ContactSubmission(
        name=name,
        email=email,
        budget=_clean(raw.get("budget")),
        message=message,
    )


def format_submission_time(moment: datetime, tz_name: str) -> str:
    """e.g. 'October 18, 2026 at 02:05 PM EDT'."""
    local = moment.astimezone(ZoneInfo(tz_name))
    return local.strftime("%B %d, %Y at %I:%M %p %Z")


def build_template_variables(
    submission: ContactSubmission,
    developer_email: str,
    submission_time: str,
) -> dict[str, str]:
    return {
        "CLIENT_NAME": submission.name,
        "CLIENT_EMAIL": submission.email,
        "CLIENT_BUDGET": submission.budget or NO_BUDGET,
        "CLIENT_MESSAGE": submission.message,
        "DEVELOPER_EMAIL": developer_email,
        "SUBMISSION_TIME": submission_time,
    }


def escape_variables(variables: Mapping[str, str]) -> dict[str, str]:
    """HTML-escape values destined for an HTML template."""
    return {key: html.escape(value) for key, value in variables.items()}


class ContactService:
    """Runs one contact submission through templates and mail dispatch."""

    def __init__(
        self,
        settings: Settings,
        templates: TemplateStore,
        dispatcher: MailDispatcher,
        now=None,
    ):
        self.settings = settings
        self.templates = templates
        self.dispatcher = dispatcher
        self._now = now or (lambda: datetime.now(timezone.utc))

    def render_pair(self, name: str, variables: Mapping[str, str]) -> tuple[str, str]:
        """Load and render the (html, text) pair for template name."""
        try:
            html_template, text_template = self.templates.load_pair(name)
        except TemplateNotFound as e:
            # Re-raise with the visitor-facing contact address filled in
            raise TemplateNotFound(e.name, e.fmt, self.settings.contact_address) from e
        return (
            render_template(html_template, escape_variables(variables)),
            render_template(text_template, variables),
        )

    def build_mails(self, submission: ContactSubmission) -> tuple[OutboundMail, OutboundMail]:
        """Render the owner notification and the visitor auto-reply."""
        s = self.settings
        sender = s.email_user or ""
        submitted_at = format_submission_time(self._now(), s.submission_timezone)
        variables = build_template_variables(submission, s.contact_address, submitted_at)

        notification_html, notification_text = self.render_pair(NOTIFICATION_TEMPLATE, variables)
        auto_reply_html, auto_reply_text = self.render_pair(AUTO_REPLY_TEMPLATE, variables)

        name = _header_text(submission.name)
        budget = _header_text(submission.budget or NO_BUDGET_SUBJECT)

        notification = OutboundMail(
            from_address=formataddr((f"{name} via Portfolio", sender)),
            to=s.owner_email or sender,
            reply_to=submission.email,
            subject=f"New Project Inquiry from {name} - {budget}",
            html=notification_html,
            text=notification_text,
        )
        auto_reply = OutboundMail(
            from_address=formataddr((s.owner_name, sender)),
            to=submission.email,
            subject=f"Thanks for your inquiry, {name}! I'll be in touch soon",
            html=auto_reply_html,
            text=auto_reply_text,
        )
        return notification, auto_reply

    async def submit(self, submission: ContactSubmission) -> None:
        """
        Send the notification and the auto-reply for a validated submission.

        Raises:
            TemplateNotFound: a template file is missing; nothing was sent.
            DispatchError: verification or a send failed.
        """
        notification, auto_reply = self.build_mails(submission)

        await self.dispatcher.verify()
        await self.dispatcher.send(notification)
        await self.dispatcher.send(auto_reply)

        logger.info(
            f"Contact email sent from {submission.name} ({submission.email}) "
            f"at {self._now().isoformat()}"
        )
