"""Authentication routes: sign in, register, sign out and session status."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from linkverse.core.container import container
from linkverse.core.logging import get_logger
from linkverse.services.account import AccountService
from linkverse.services.session import AuthSession

logger = get_logger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def get_account_service() -> AccountService:
    return container.account_service()


def get_session() -> AuthSession:
    return container.session()


def _user_payload(user):
    if user is None:
        return None
    return {"id": user.id, "email": user.email}


@router.get("/status")
async def get_auth_status(session: AuthSession = Depends(get_session)):
    """Whether an owner is signed in, and who."""
    return {
        "authenticated": session.is_authenticated,
        "user": _user_payload(session.current_user()),
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    account: AccountService = Depends(get_account_service)
):
    user = await account.sign_in(request.email, request.password)
    return {"success": True, "user": _user_payload(user)}


@router.post("/register")
async def register(
    request: RegisterRequest,
    account: AccountService = Depends(get_account_service)
):
    """Register; the session opens immediately only if the backend auto-confirms."""
    user = await account.sign_up(request.email, request.password, request.full_name)
    return {
        "success": True,
        "user": _user_payload(user),
        "confirmation_required": user is None,
    }


@router.post("/logout")
async def logout(account: AccountService = Depends(get_account_service)):
    await account.sign_out()
    container.add_link_form().reset()
    return {"success": True}
