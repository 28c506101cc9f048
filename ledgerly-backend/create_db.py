from app import app
from logger import get_logger
from models import db

logger = get_logger(__name__)

# This script creates any missing tables in your database
# It will NOT delete or overwrite your existing data

if __name__ == "__main__":
    with app.app_context():
        try:
            db.create_all()
            logger.info(f"Database tables checked and created: {', '.join(sorted(db.metadata.tables))}")
        except Exception as e:
            logger.error(f"Could not create tables. Reason: {e}")
            raise SystemExit(1)
