import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

import coinapi.models  # noqa: F401  (테이블 메타데이터 등록)
from coinapi.config import settings
from coinapi.database.connection import engine
from coinapi.models.base import Base


def init_db():
    """데이터베이스 초기화"""
    try:
        # 스키마 생성 (PostgreSQL 만 해당)
        if not settings.is_sqlite:
            with engine.connect() as conn:
                conn.execute(
                    text(f"CREATE SCHEMA IF NOT EXISTS {settings.POSTGRES_SCHEMA}")
                )
                conn.commit()

        # 테이블 생성
        Base.metadata.create_all(bind=engine)
        print(
            f"Database initialized successfully with schema: {settings.POSTGRES_SCHEMA}"
        )

    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()
