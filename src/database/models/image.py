from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, text
from sqlalchemy.orm import relationship

from ..database import Base
from src.domain.records import utcnow


class Image(Base):
    """
    레지스트리에 등록된 이름 있는 컨테이너 이미지 (예: 'app/web').
    이미지는 자신의 태그를 독점적으로 소유하며, 삭제 시 태그가 먼저 삭제됩니다.
    owner는 사용자 이름만 기록하는 약한 참조입니다.
    """
    __tablename__ = "images"
    __table_args__ = (
        Index(
            "uq_images_name_live", "name", unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False, default="")
    owner = Column(String, nullable=False, default="")
    public = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    tags = relationship("Tag", back_populates="image")
