from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from ..database import Base
from src.domain.records import utcnow


class Tag(Base):
    """
    하나의 이미지에 속한 태그 (예: 'v1', 'latest').
    태그 이름은 같은 이미지 안에서만 유일하며, 다른 이미지에서는 재사용할 수 있습니다.
    digest와 size는 외부 blob 전송 엔드포인트가 보고한 값입니다.
    """
    __tablename__ = "tags"
    __table_args__ = (
        Index(
            "uq_tags_image_name_live", "image_id", "name", unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    image_id = Column(Integer, ForeignKey("images.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    digest = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    pull_count = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_pulled_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    image = relationship("Image", back_populates="tags")
