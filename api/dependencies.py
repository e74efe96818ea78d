"""API Dependencies - Authentication and authorization"""
import logging
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from domain.auth import User, UserInDB
from domain.enums import UserRole
from domain.repositories import UserRepository
from infrastructure.database import user_repo, DEMO_VENDOR_ID
from infrastructure.security import SECRET_KEY, ALGORITHM, get_password_hash
from api.schemas import TokenData

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Demo accounts, stored in the user repository on first login
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "disabled": False,
        "role": UserRole.ADMIN,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "vendor": {
        "username": "vendor",
        "full_name": "Demo Vendor",
        "email": "vendor@example.com",
        "plain_password": "vendor123",
        "disabled": False,
        "role": UserRole.VENDOR,
        "vendor_ids": [str(DEMO_VENDOR_ID)],
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "student": {
        "username": "student",
        "full_name": "Demo Student",
        "email": "student@example.com",
        "plain_password": "student123",
        "disabled": False,
        "role": UserRole.STUDENT,
        "gender": "Male",
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
}

# Public alias for backwards compatibility
fake_users_db = _fake_users_db


async def _seed_user(repo: UserRepository, username: str) -> UserInDB:
    """Hash a demo account's password on first access and store it"""
    user_dict = _fake_users_db[username].copy()
    user_dict["hashed_password"] = get_password_hash(user_dict.pop("plain_password"))
    user = UserInDB(**user_dict)
    await repo.save(user)
    return user


async def get_user(repo: UserRepository, username: str):
    user = await repo.find_by_username(username)
    if user is None and username in _fake_users_db:
        user = await _seed_user(repo, username)
    return user


def get_user_repository() -> UserRepository:
    return user_repo


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    repo: UserRepository = Depends(get_user_repository)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = await get_user(repo, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def require_staff(current_user: User = Depends(get_current_active_user)):
    """Admins, vendors and vendor employees"""
    if not current_user.is_staff():
        logger.warning("User %s denied staff access", current_user.username)
        raise HTTPException(status_code=403, detail="Not enough permissions")
    return current_user


async def require_admin(current_user: User = Depends(get_current_active_user)):
    if not current_user.is_admin():
        logger.warning("User %s denied admin access", current_user.username)
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def ensure_vendor_access(current_user: User, vendor_id: UUID) -> None:
    if not current_user.can_manage_vendor(vendor_id):
        raise HTTPException(status_code=403, detail="Not allowed to manage this vendor")
