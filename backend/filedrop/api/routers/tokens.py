"""
Token Management Router
Endpoint for administrators to mint upload tokens.
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError as PydanticValidationError

from ...core.dependencies import AppServices, get_services
from ...core.exceptions import ValidationError
from ...utils.auth import get_admin_user
from ..schemas import token as token_schema

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["tokens"],
)


async def _read_token_request(request: Request) -> token_schema.TokenCreate:
    """Accept the token request either as JSON or as a submitted form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError as e:
            raise ValidationError("Request body is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
    else:
        form = await request.form()
        payload = {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        return token_schema.TokenCreate.model_validate(payload)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Invalid token request: {fields}") from e


@router.post(
    "/gen",
    response_model=token_schema.TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an upload token"
)
async def generate_token(
    request: Request,
    username: str = Depends(get_admin_user),
    services: AppServices = Depends(get_services),
):
    """
    Create a Fresh token for a path.

    Accepts `path`, `max-size`, `content-expires` and `valid-for`, as form
    fields or as a JSON object. A path that already has a live token is
    rejected with 409.
    """
    params = await _read_token_request(request)
    token = await services.tokens.request_token(params)
    logger.info("User %s requested token %s", username, token.path)
    return token
