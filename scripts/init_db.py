import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vamo.database.connection import engine  # noqa: E402
from vamo.logging_config import setup_logging  # noqa: E402
from vamo.models.base import Base  # noqa: E402
from vamo.models import activity, profile, reward  # noqa: E402,F401

logger = logging.getLogger("vamo")


def init_db():
    """테이블 생성 (로컬 개발용 - Supabase 환경은 마이그레이션으로 관리)"""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Database initialized: {sorted(Base.metadata.tables)}")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging()
    init_db()
