"""
酒店与员工账号服务
注册时创建酒店及其经理账号；登录返回携带酒店 ID 的令牌
"""
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotelops.database import transaction
from hotelops.errors import NotFound, ValidationError
from hotelops.models.ontology import Hotel, User, StaffRole
from hotelops.models.schemas import SignupRequest, HotelUpdate
from hotelops.security.auth import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)


class HotelService:
    """酒店与员工服务"""

    def __init__(self, db: Session):
        self.db = db

    # ============== 账号 ==============

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def signup(self, data: SignupRequest) -> dict:
        """注册：创建酒店和经理账号，返回登录结果"""
        if self.get_user_by_email(data.email):
            raise ValidationError("该邮箱已注册")

        try:
            with transaction(self.db):
                hotel = Hotel(name=data.hotel_name.strip())
                self.db.add(hotel)
                self.db.flush()
                user = User(
                    hotel_id=hotel.id,
                    name=data.name.strip(),
                    email=data.email.strip().lower(),
                    password_hash=get_password_hash(data.password),
                    role=StaffRole.MANAGER,
                )
                self.db.add(user)
        except IntegrityError:
            raise ValidationError("该邮箱已注册")

        self.db.refresh(user)
        logger.info(f"Hotel {hotel.id} registered by user {user.id}")
        return self._login_result(user)

    def create_user(self, hotel_id: int, name: str, email: str, password: str,
                    role: StaffRole = StaffRole.RECEPTIONIST) -> User:
        """经理为本酒店添加员工账号"""
        if self.get_user_by_email(email):
            raise ValidationError("该邮箱已注册")
        user = User(
            hotel_id=hotel_id,
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=get_password_hash(password),
            role=role,
        )
        with transaction(self.db):
            self.db.add(user)
        self.db.refresh(user)
        return user

    def list_users(self, hotel_id: int) -> List[User]:
        return self.db.query(User).filter(User.hotel_id == hotel_id).order_by(User.id).all()

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        """认证登录，邮箱或密码错误返回 None"""
        user = self.get_user_by_email(email)
        if not user:
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not user.is_active:
            raise ValidationError("账号已停用")

        return self._login_result(user)

    def update_profile(self, user: User, name: str) -> User:
        with transaction(self.db):
            user.name = name.strip()
        self.db.refresh(user)
        return user

    def user_profile(self, user: User) -> dict:
        """当前用户资料（附带酒店名称）"""
        return {
            'id': user.id,
            'hotel_id': user.hotel_id,
            'name': user.name,
            'email': user.email,
            'role': user.role,
            'is_active': user.is_active,
            'hotel_name': user.hotel.name if user.hotel else None,
        }

    def _login_result(self, user: User) -> dict:
        return {
            'access_token': create_access_token(user.id, user.role, user.hotel_id),
            'token_type': 'bearer',
            'user': self.user_profile(user),
        }

    # ============== 酒店设置 ==============

    def get_hotel(self, hotel_id: int) -> Hotel:
        hotel = self.db.query(Hotel).filter(Hotel.id == hotel_id).first()
        if not hotel:
            raise NotFound("酒店不存在")
        return hotel

    def update_hotel(self, hotel_id: int, data: HotelUpdate) -> Hotel:
        """更新酒店名称、地址、电话"""
        hotel = self.get_hotel(hotel_id)
        update_data = data.model_dump(exclude_unset=True)

        with transaction(self.db):
            for key, value in update_data.items():
                if key == "name" and not value:
                    continue
                setattr(hotel, key, value)

        self.db.refresh(hotel)
        return hotel
