"""
Auth API Endpoints.

Login and registration. Both share the strict authentication rate limit, which
is checked before the request body reaches the credential store.
"""

from fastapi import APIRouter, Depends

from api.dependencies import auth_rate_limit
from api.models import CredentialsRequest, ErrorResponse, LoginResponse, MessageResponse
from services.auth_service import authenticate, register

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log In",
    description="Exchange a username and password for a session token valid for 2 hours.",
    dependencies=[Depends(auth_rate_limit)],
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def login(request: CredentialsRequest):
    """
    Authenticate and issue a bearer token.

    **Example request:**
    ```json
    {"user": "alice", "pass": "pw1"}
    ```
    """
    session = authenticate(request.username, request.password)
    return LoginResponse(token=session.token, expires_in=session.expires_in)


@router.post(
    "/register",
    response_model=MessageResponse,
    summary="Register",
    description="Create a staff account.",
    dependencies=[Depends(auth_rate_limit)],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def register_user(request: CredentialsRequest):
    register(request.username, request.password)
    return MessageResponse(message="Registered.")
