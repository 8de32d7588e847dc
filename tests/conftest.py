# tests/conftest.py
import pytest

from src.database.database import Base, create_db_engine, create_session_factory
from src.database import models  # noqa: F401  (테이블 메타데이터 등록)
from src.repositories.sqlalchemy.sqlalchemy_image_repository import SqlalchemyImageRepository
from src.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from src.services.metadata_store import MetadataStore
from src.utils.password_hasher import PasswordHasher

# ===================================================================
#  인메모리 SQLite 기반 공용 Fixture
# ===================================================================

@pytest.fixture
def engine():
    """테스트마다 비어 있는 인메모리 SQLite 엔진을 생성합니다."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)

@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def hasher() -> PasswordHasher:
    """테스트 속도를 위해 bcrypt 라운드를 최소로 설정합니다."""
    return PasswordHasher(rounds=4)

@pytest.fixture
def user_repo(db_session) -> SqlalchemyUserRepository:
    return SqlalchemyUserRepository(db_session)

@pytest.fixture
def image_repo(db_session) -> SqlalchemyImageRepository:
    return SqlalchemyImageRepository(db_session)

@pytest.fixture
def store(user_repo, image_repo, hasher) -> MetadataStore:
    """실제 SQLAlchemy 리포지토리를 사용하는 MetadataStore."""
    return MetadataStore(user_repo, image_repo, hasher)
