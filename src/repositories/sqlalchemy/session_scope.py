from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from src.services.exceptions import StoreUnavailableError


def live(query: Query, model) -> Query:
    """소프트 삭제된 행을 제외하는 공통 필터. 모든 조회 쿼리에 적용합니다."""
    return query.filter(model.deleted_at.is_(None))


@contextmanager
def transaction(db: Session):
    """
    블록 전체를 하나의 트랜잭션으로 실행합니다.
    정상 종료 시 commit, 예외 발생 시 rollback 후 예외를 다시 던집니다.
    IntegrityError는 호출자가 충돌로 해석할 수 있도록 그대로 전달하고,
    그 밖의 SQLAlchemy 오류는 StoreUnavailableError로 변환합니다.
    """
    try:
        yield db
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailableError(f"Metadata store operation failed: {e}") from e
    except Exception:
        db.rollback()
        raise


@contextmanager
def reading(db: Session):
    """읽기 전용 작업의 SQLAlchemy 오류를 StoreUnavailableError로 변환합니다."""
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailableError(f"Metadata store read failed: {e}") from e
