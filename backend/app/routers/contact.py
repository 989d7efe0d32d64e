"""
Contact form API endpoint.

POST /api/contact accepts JSON or form-encoded bodies with
name, email, message and an optional budget.

Responses (all ``{"success": bool, "message": str}``):
  200  both emails sent
  400  missing fields or invalid email
  429  more than 5 submissions from this address in the last hour
  500  template or mail transport failure
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from app.dependencies import enforce_contact_rate_limit, get_contact_service
from app.models.contact import ApiResponse
from app.services.contact import SUCCESS_MESSAGE, ContactService, validate_submission
from app.services.rate_limiter import RateLimitResult

router = APIRouter()

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_fields(request: Request) -> dict[str, Any]:
    """
    Return the submitted fields as a dict.

    Bodies that cannot be decoded, or JSON that is not an object, yield an
    empty dict so validation reports the missing fields.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post(
    "/contact",
    response_model=ApiResponse,
    responses={
        200: {
            "description": "Notification and auto-reply sent",
            "content": {
                "application/json": {
                    "example": {"success": True, "message": SUCCESS_MESSAGE}
                }
            },
        },
        400: {"description": "Missing required fields or invalid email", "model": ApiResponse},
        429: {"description": "Too many submissions from this address", "model": ApiResponse},
        500: {"description": "Template or mail transport failure", "model": ApiResponse},
    },
)
async def submit_contact(
    request: Request,
    response: Response,
    rate_limit: RateLimitResult = Depends(enforce_contact_rate_limit),
    service: ContactService = Depends(get_contact_service),
):
    """
    Validate a contact-form submission and send two emails: a notification
    to the site owner (Reply-To set to the visitor) and an auto-reply to the
    visitor. The auto-reply is only attempted once the notification is sent.
    """
    fields = await _read_fields(request)
    submission = validate_submission(fields)

    await service.submit(submission)

    response.headers.update(rate_limit.headers())
    return ApiResponse(success=True, message=SUCCESS_MESSAGE)
