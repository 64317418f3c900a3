"""
Create an admin user, or promote an existing one.
Run: python -m scripts.create_admin admin@example.com --password '...' --name 'Admin'
"""
import argparse
import logging
import sys

from toeic_api.db.session import SessionLocal
from toeic_api.db.models.user import User
from toeic_api.core.security import hash_password

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_admin(email: str, password: str = None, name: str = None) -> bool:
    """Create or promote a user to the admin role."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()

        if not user:
            if not password:
                logger.error(f"User {email} not found and no password provided. Cannot create user.")
                return False

            logger.info(f"Creating new admin user: {email}")
            user = User(
                email=email.lower(),
                name=name or "Admin",
                password_hash=hash_password(password),
                email_verified=True,
            )
            db.add(user)
        else:
            logger.info(f"Found existing user: {email} (ID: {user.id})")

        user.role = "admin"
        user.is_active = True
        user.email_verified = True
        db.commit()
        db.refresh(user)
        logger.info(f"User {email} (ID: {user.id}) now has the admin role")
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"Error creating admin: {e}", exc_info=True)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email")
    parser.add_argument("--password", help="Required when the user does not exist yet")
    parser.add_argument("--name")
    args = parser.parse_args()

    if create_admin(args.email, args.password, args.name):
        print(f"\n[SUCCESS] {args.email} is now an admin")
    else:
        print(f"\n[ERROR] Failed to set up admin {args.email}")
        sys.exit(1)
