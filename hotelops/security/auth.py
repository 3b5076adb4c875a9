"""
认证与授权模块
员工令牌携带 user id / 角色 / 酒店 ID；客人令牌（typ=guest）由访问码换取，有效期有限
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import List, Tuple
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from hotelops.config import settings
from hotelops.database import get_db
from hotelops.models.ontology import User, Guest, StaffRole

logger = logging.getLogger(__name__)

GUEST_TOKEN_TYPE = "guest"
STAFF_TOKEN_TYPE = "staff"

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    """密码哈希"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: int, role: StaffRole, hotel_id: int) -> str:
    """创建员工 JWT token"""
    expire = datetime.now(UTC) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user_id),
        "typ": STAFF_TOKEN_TYPE,
        "role": role.value if isinstance(role, StaffRole) else str(role),
        "hotel_id": hotel_id,
        "exp": expire
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_guest_token(guest_id: int) -> Tuple[str, datetime]:
    """创建客人门户 token，返回 (token, 过期时间)"""
    expire = datetime.now(UTC) + timedelta(minutes=settings.GUEST_SESSION_MINUTES)
    to_encode = {
        "sub": str(guest_id),
        "typ": GUEST_TOKEN_TYPE,
        "exp": expire
    }
    token = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, expire.replace(tzinfo=None)


def decode_token(token: str) -> dict:
    """解码 JWT token（签名错误或过期都视为无效）"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )


def user_from_token(token: str, db: Session) -> User:
    """由员工 token 解析当前用户（HTTP 与 WebSocket 共用）"""
    payload = decode_token(token)
    if payload.get("typ") != STAFF_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="需要员工账号登录"
        )

    user = db.query(User).filter(User.id == int(payload.get("sub"))).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用户不存在"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="账号已停用"
        )

    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """获取当前登录员工"""
    return user_from_token(credentials.credentials, db)


async def get_current_guest(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Guest:
    """获取当前门户客人"""
    payload = decode_token(credentials.credentials)
    if payload.get("typ") != GUEST_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="需要客人访问码登录"
        )

    guest = db.query(Guest).filter(Guest.id == int(payload.get("sub"))).first()
    if not guest:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="客人不存在"
        )
    return guest


def require_role(allowed_roles: List[StaffRole]):
    """角色权限验证"""
    async def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            logger.info(f"User {current_user.id} ({current_user.role.value}) denied, needs {allowed_roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="权限不足"
            )
        return current_user
    return role_checker


# 便捷的角色检查器
require_manager = require_role([StaffRole.MANAGER])
require_front_desk = require_role([StaffRole.MANAGER, StaffRole.RECEPTIONIST])
require_staff = require_role([StaffRole.MANAGER, StaffRole.RECEPTIONIST, StaffRole.CLEANER])
