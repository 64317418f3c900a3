"""
Upsert the built-in subscription plans.
Run: python -m scripts.seed_subscription_plans
"""
import logging
import sys

from toeic_api.db.session import SessionLocal
from toeic_api.services.subscription_service import seed_plans

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    db = SessionLocal()
    try:
        result = seed_plans(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Plan seeding failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        db.close()

    print(f"\n[SUCCESS] Plans seeded: {result['created']} created, {result['updated']} updated")
