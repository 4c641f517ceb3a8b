from contextlib import contextmanager
from sqlalchemy.orm import Session
from flowdash.core.logging_config import get_logger

logger = get_logger("db_transaction")


@contextmanager
def db_transaction(db: Session, operation_name: str = "transaction"):
    """Commit the unit of work on success, roll it back and re-raise on any error."""
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"{operation_name} rolled back: {str(e)}", exc_info=True)
        raise
