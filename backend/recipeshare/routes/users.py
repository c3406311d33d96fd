# recipeshare/routes/users.py
import logging

from fastapi import APIRouter, Depends, Header, Request, Response, status

from recipeshare.auth.identity import Identity
from recipeshare.core.rate_limit import REGISTER_LIMIT, limiter
from recipeshare.dependencies.auth import (
    ensure_owner,
    get_account_service,
    optional_identity,
    require_identity,
    target_user_id,
)
from recipeshare.models.user import User
from recipeshare.schemas.auth import MessageOut
from recipeshare.schemas.user import (
    ConfirmAccountIn,
    PasswordResetIn,
    RegisterIn,
    RegisterOut,
    UpdateUserIn,
    UserProfileOut,
)
from recipeshare.services.accounts import AccountService, DeletionOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

_DELETION_RESPONSES: dict[DeletionOutcome, tuple[int, str]] = {
    DeletionOutcome.CONFIRMATION_SENT: (
        status.HTTP_202_ACCEPTED,
        "Deletion confirmation email sent. Please check your inbox to confirm.",
    ),
    DeletionOutcome.ALREADY_PENDING: (
        status.HTTP_202_ACCEPTED,
        "A deletion confirmation is already pending. Please check your inbox.",
    ),
    DeletionOutcome.DELETED: (
        status.HTTP_200_OK,
        "User and all associated data successfully deleted.",
    ),
}


def _profile(user: User) -> dict:
    return {
        "userId": user.id,
        "email": user.email,
        "username": user.username,
        "verified": bool(user.verified),
        "googleLinked": bool(user.google_id),
    }


@router.post("", response_model=RegisterOut, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(REGISTER_LIMIT)
def register(
    request: Request,
    payload: RegisterIn,
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.register(payload.username, payload.email, payload.password)
    return {
        "message": "Verification email sent. Please check your inbox and spam folder.",
        "userId": user.id,
    }


@router.post("/{user_id}/confirmation", response_model=MessageOut)
def confirm_account(
    payload: ConfirmAccountIn,
    user_id: str = Depends(target_user_id),
    accounts: AccountService = Depends(get_account_service),
):
    accounts.confirm_account(user_id, payload.token)
    return {"message": "Account successfully verified."}


@router.post("/{user_id}/password-reset", response_model=MessageOut)
def reset_password(
    payload: PasswordResetIn,
    user_id: str = Depends(target_user_id),
    accounts: AccountService = Depends(get_account_service),
):
    accounts.reset_password(user_id, payload.token, payload.new_password)
    return {"message": "Password successfully reset."}


@router.get("/{user_id}", response_model=UserProfileOut)
def get_profile(
    user_id: str = Depends(target_user_id),
    identity: Identity = Depends(require_identity),
    accounts: AccountService = Depends(get_account_service),
):
    ensure_owner(identity, user_id, "You can only view your own profile.")
    return _profile(accounts.get_profile(user_id))


@router.patch("/{user_id}", response_model=UserProfileOut)
def update_user(
    payload: UpdateUserIn,
    user_id: str = Depends(target_user_id),
    identity: Identity = Depends(require_identity),
    accounts: AccountService = Depends(get_account_service),
):
    ensure_owner(identity, user_id, "You can only edit your own account.")
    user = accounts.rename(user_id, username=payload.username, email=payload.email)
    return _profile(user)


@router.delete("/{user_id}", response_model=MessageOut)
def delete_account(
    response: Response,
    user_id: str = Depends(target_user_id),
    identity: Identity = Depends(optional_identity),
    password: str | None = Header(default=None, alias="X-User-Password"),
    delete_token: str | None = Header(default=None, alias="X-User-Delete-Token"),
    accounts: AccountService = Depends(get_account_service),
):
    # Auth is optional: the emailed confirmation link may be opened after logout.
    outcome = accounts.delete_account(
        user_id,
        identity,
        password=password,
        delete_token=delete_token,
    )
    status_code, message = _DELETION_RESPONSES[outcome]
    response.status_code = status_code
    return {"message": message}
