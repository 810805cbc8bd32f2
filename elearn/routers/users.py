"""User administration and self-service routes."""
import math

from fastapi import APIRouter, Query, status

from elearn.dependencies import Accounts, AdminIdentity, CurrentIdentity
from elearn.schemas.auth import ChangePasswordSchema
from elearn.services.accounts import public_user

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
async def list_users(
    _: AdminIdentity,
    accounts: Accounts,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    users, total = await accounts.list_users(page, limit)
    return {
        "success": True,
        "data": [public_user(u) for u in users],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.get("/me")
async def get_me(identity: CurrentIdentity, accounts: Accounts):
    user = await accounts.get_by_id(identity.id)
    return {"success": True, "user": public_user(user)}


@router.put("/change-password")
async def change_password(body: ChangePasswordSchema, identity: CurrentIdentity, accounts: Accounts):
    """Change the caller's password; every other session is signed out."""
    await accounts.change_password(identity.id, body.current_password, body.new_password)
    return {"success": True, "message": "Password changed successfully!"}


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
async def delete_user(user_id: int, _: AdminIdentity, accounts: Accounts):
    await accounts.delete_user(user_id)
    return {"success": True, "message": "User deleted successfully"}
