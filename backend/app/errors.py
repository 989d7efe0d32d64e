"""
Error taxonomy for the contact pipeline.

Every failure the pipeline can hit is a ContactError subclass carrying the
HTTP status and the message shown to the visitor. app.main registers one
exception handler that renders them as ``{"success": false, "message": ...}``;
internal detail stays in the logs.

  SubmissionInvalid     400  missing fields / malformed email
  RateLimitExceeded     429  too many submissions from one client
  TemplateNotFound      500  an email template could not be read
  ConfigurationError    500  mail credentials missing
  AuthenticationError   500  SMTP provider rejected the credentials
  MailTimeoutError      500  SMTP provider did not answer in time
  UnknownDispatchError  500  any other transport failure
"""

from typing import Optional

GENERIC_FAILURE = (
    "Sorry, there was an error sending your message. "
    "Please try again or email me directly at {contact}"
)


def _with_contact(template: str, contact: Optional[str]) -> str:
    text = template.format(contact=contact or "my personal address")
    return text if text.endswith((".", "!", "?")) else text + "."


class ContactError(Exception):
    """Base class: an error that ends a contact request with a JSON reply."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(detail or message)
        self.message = message
        self.detail = detail or message
        self.headers: dict[str, str] = {}


class SubmissionInvalid(ContactError):
    status_code = 400


class RateLimitExceeded(ContactError):
    status_code = 429

    def __init__(self, headers: Optional[dict[str, str]] = None):
        super().__init__("Too many emails sent from this IP. Please try again later.")
        self.headers = dict(headers or {})


class TemplateNotFound(ContactError):
    """Raised by the template store. The file path is logged, never returned."""

    def __init__(self, name: str, fmt: str, contact: Optional[str] = None):
        super().__init__(
            _with_contact(GENERIC_FAILURE, contact),
            detail=f"Template {name}.{fmt} not found",
        )
        self.name = name
        self.fmt = fmt


class DispatchError(ContactError):
    """Base for mail transport failures."""

    user_message = GENERIC_FAILURE

    def __init__(self, contact: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(_with_contact(self.user_message, contact), detail=detail)


class ConfigurationError(DispatchError):
    user_message = (
        "The email service is not configured right now. "
        "Please email me directly at {contact}"
    )


class AuthenticationError(DispatchError):
    user_message = (
        "The email service could not authenticate. "
        "Please email me directly at {contact}"
    )


class MailTimeoutError(DispatchError):
    user_message = (
        "The email service timed out. "
        "Please try again later or email me directly at {contact}"
    )


class UnknownDispatchError(DispatchError):
    user_message = GENERIC_FAILURE
