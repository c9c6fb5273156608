import logging

from sqlalchemy.orm import Session

from .auth import ROLE_ADMIN, ROLE_STOREKEEPER, ROLE_VIEWER, hash_password
from .models import User

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    ("admin", "admin@localhost", "admin123", ROLE_ADMIN, "Administrator"),
    ("storekeeper", "store@localhost", "store123", ROLE_STOREKEEPER, "Store Keeper"),
    ("viewer", "viewer@localhost", "view123", ROLE_VIEWER, "Viewer User"),
]


def seed_initial_data(db: Session) -> bool:
    """Create the default accounts on an empty database; returns False if skipped."""
    if db.query(User.id).first() is not None:
        logger.info("Database already seeded, skipping")
        return False

    for username, email, password, role, full_name in DEFAULT_USERS:
        db.add(
            User(
                username=username,
                email=email,
                hashed_password=hash_password(password),
                role=role,
                full_name=full_name,
                is_active=True,
            )
        )
    db.commit()
    logger.warning("Seeded default users with well-known passwords; change them before production use")
    return True
