"""
Pydantic models for the contact form feature.

Models:
  ContactSubmission  validated form input (one request, never persisted)
  OutboundMail       a fully rendered message ready for the dispatcher
  ApiResponse        {success, message} body used by every endpoint
  HealthResponse     GET /api/health body
"""

from typing import Optional
from pydantic import BaseModel


class ContactSubmission(BaseModel):
    """
    A contact-form submission after validation.

    name, email and message are guaranteed non-empty and trimmed; budget is
    None when the visitor left it blank.
    """

    name: str
    email: str
    budget: Optional[str] = None
    message: str


class OutboundMail(BaseModel):
    """One rendered email with both a plain-text and an HTML body."""

    from_address: str
    to: str
    reply_to: Optional[str] = None
    subject: str
    html: str
    text: str


class ApiResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(ApiResponse):
    timestamp: str
