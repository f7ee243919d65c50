import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fintrack.models import Base, User
from app.fintrack.modules.categories.models import Category
from scripts._db_utils import create_script_engine, script_session

DEFAULT_CATEGORIES = (
    ("Salary", "INCOME", "#22C55E"),
    ("Freelance", "INCOME", "#10B981"),
    ("Groceries", "EXPENSE", "#F97316"),
    ("Rent", "EXPENSE", "#EF4444"),
    ("Utilities", "EXPENSE", "#EAB308"),
    ("Transport", "EXPENSE", "#3B82F6"),
    ("Entertainment", "EXPENSE", "#A855F7"),
    ("Health", "EXPENSE", "#EC4899"),
)


def create_tables(database_url: str) -> None:
    """Local/dev helper. Production schemas are managed by `alembic upgrade head`."""
    engine = create_script_engine(database_url)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> User | None:
    """
    Seed an initial user and their default categories in an idempotent way.
    Does nothing unless SEED_USER_EMAIL is set; never overwrites an existing password.
    """
    email = (os.environ.get("SEED_USER_EMAIL") or "").strip().lower()
    if not email:
        print("SEED_USER_EMAIL not set; skipping seed.")
        return None
    password = os.environ.get("SEED_USER_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///fintrack.db").strip()

    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user:
            user = User(email=email, password_hash=generate_password_hash(password), is_active=True)
            s.add(user)
            s.flush()

        has_categories = (
            s.query(Category.id).filter(Category.user_id == user.id, Category.organization_id.is_(None)).first()
        )
        if not has_categories:
            for name, kind, color in DEFAULT_CATEGORIES:
                s.add(Category(name=name, type=kind, color=color, user_id=user.id, organization_id=None))

    print("Initialized database (seed_only).")
    print(f"Seed user email: {email}")
    print("Seed user password: (from SEED_USER_PASSWORD)")
    return user


def main() -> None:
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///fintrack.db").strip()
    if "--create-tables" in sys.argv[1:]:
        create_tables(db_url)
        print("Created tables.")
    seed_only(database_url=db_url)


if __name__ == "__main__":
    main()
