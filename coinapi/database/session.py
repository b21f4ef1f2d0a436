from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from coinapi.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context():
    """컨텍스트 매니저를 사용한 데이터베이스 세션 관리"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def atomic(db: Session, commit: bool = True) -> Iterator[Session]:
    """하나의 작업 단위(unit of work)

    블록 안에서 발생한 모든 쓰기는 함께 커밋되거나 함께 롤백됩니다.
    commit=False 이면 상위 호출자가 커밋 시점을 결정하며, 예외 발생 시에만 롤백합니다.
    """
    try:
        yield db
        if commit:
            db.commit()
        else:
            db.flush()
    except Exception:
        db.rollback()
        raise
