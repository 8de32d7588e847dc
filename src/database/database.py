from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()


def create_db_engine(database_url: str, connect_timeout: int = 5) -> Engine:
    """
    데이터베이스 URL로부터 SQLAlchemy 엔진을 생성합니다.
    엔진은 프로세스 시작 시 한 번 만들어 요청 간에 공유합니다.

    Args:
        database_url: SQLAlchemy 연결 문자열 (PostgreSQL 또는 SQLite).
        connect_timeout: PostgreSQL 연결 타임아웃(초).
    """
    if database_url.startswith("sqlite"):
        # SQLite는 스레드 간 공유를 허용해야 하며, 인메모리 DB는 단일 연결을 유지해야 합니다.
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=connect_timeout,
        connect_args={"connect_timeout": connect_timeout},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    # autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
