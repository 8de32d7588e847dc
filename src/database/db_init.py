import logging

from sqlalchemy.exc import SQLAlchemyError

from .database import Base
from .models import *
from src.utils.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)


def initialize_db(engine, session_factory, hasher: PasswordHasher, admin_username: str, admin_password: str, admin_email: str = ""):
    """
    테이블을 생성하고, 사용자가 한 명도 없으면 초기 관리자 계정을 삽입합니다.
    사용자 관리 API는 인증이 필요하므로 최초 로그인을 위한 계정이 있어야 합니다.
    """
    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready")

    db = session_factory()
    try:
        # 기본 데이터가 이미 있는지 확인
        if db.query(User).filter(User.deleted_at.is_(None)).first():
            logger.info("Users already exist, skipping bootstrap")
            return

        admin_user = User(
            username=admin_username,
            secret_hash=hasher.hash(admin_password),
            email=admin_email,
            role="admin",
            active=True,
        )
        db.add(admin_user)
        db.commit()
        logger.info("Bootstrap admin user created", extra={"username": admin_username})

    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()
