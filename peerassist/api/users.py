"""User registration and profile routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from peerassist.auth import AuthUser
from peerassist.config import settings
from peerassist.content import parse_body, render_response
from peerassist.database import get_db_session
from peerassist.db_models import User
from peerassist.models import ErrorResponse, RegisterRequest, RegisterResponse, UserResponse
from peerassist.rate_limit import limiter
from peerassist.services.users import register, user_to_dict

router = APIRouter()

INVALID_BODY = {"error": "Invalid request body", "code": "InvalidRequest"}


@router.post(
    "/v1/register",
    response_model=RegisterResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_register)
async def register_user(request: Request, session=Depends(get_db_session)):
    """Register with your email. Returns the API key used for every other call."""
    try:
        body = await parse_body(request)
        req = RegisterRequest(**body)
    except (ValidationError, ValueError, TypeError):
        return render_response(request, INVALID_BODY, status_code=400)

    result = await register(session, req.email, req.name, mobile=req.mobile)
    return render_response(request, RegisterResponse(**result), status_code=201)


@router.get("/v1/me", response_model=UserResponse, responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def me(request: Request, user: User = AuthUser):
    return render_response(request, UserResponse(**user_to_dict(user)))
