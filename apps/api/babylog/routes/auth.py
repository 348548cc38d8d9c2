import logging

from fastapi import APIRouter, Depends, Request, Response

from ..boundary import Boundary
from ..gate import require_identity
from ..schemas import ChangePasswordPayload, Me, SignInPayload, User
from . import get_boundary

router = APIRouter(prefix="/api/v1", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/auth/sign-in", response_model=User)
async def sign_in(
    payload: SignInPayload,
    request: Request,
    response: Response,
    boundary: Boundary = Depends(get_boundary),
) -> User:
    """Exchange an email/password pair for a session cookie."""

    user, token = boundary.sign_in(payload.email, payload.password)
    config = request.app.state.config
    response.set_cookie(
        key=config.cookie_name,
        value=token,
        max_age=request.app.state.gate.codec.ttl_seconds,
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
    )
    return user


@router.post("/auth/sign-out", status_code=204)
async def sign_out(request: Request) -> Response:
    # Cleared whether or not a valid session was present.
    config = request.app.state.config
    response = Response(status_code=204)
    response.delete_cookie(
        key=config.cookie_name,
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
    )
    return response


@router.post("/auth/password", status_code=204)
async def change_password(
    payload: ChangePasswordPayload,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Response:
    boundary.change_password(identity, payload.current_password, payload.new_password)
    return Response(status_code=204)


@router.get("/me", response_model=Me)
async def read_me(
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Me:
    return boundary.me(identity)
