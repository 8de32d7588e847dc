from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, text

from ..database import Base
from src.domain.records import utcnow


class User(Base):
    """
    레지스트리에 로그인하고 이미지를 관리하는 운영자를 나타냅니다.
    사용자 이름은 삭제되지 않은 사용자들 사이에서 유일해야 합니다.
    비밀번호는 bcrypt 해시로만 저장합니다.
    """
    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_username_live", "username", unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False, index=True)
    secret_hash = Column(String, nullable=False)
    email = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="user")
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
