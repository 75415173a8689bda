from sqlalchemy import Column, Integer, String, Enum

from storefront.data.database import Base
from storefront.domain.users import UserRole


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles], native_enum=False),
        nullable=False,
        default=UserRole.CUSTOMER,
    )
