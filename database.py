import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import DATABASE_URL
from errors import TransientStoreError

logger = logging.getLogger("complaintdesk.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run the enclosed statements as one transaction and commit on exit.

    Any failure rolls the transaction back. Integrity violations are re-raised
    as-is so callers can map them onto domain conflicts; every other storage
    failure surfaces as TransientStoreError.
    """
    try:
        yield db
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction failed: %s", exc)
        raise TransientStoreError("Storage operation failed, please retry") from exc
    except Exception:
        db.rollback()
        raise
