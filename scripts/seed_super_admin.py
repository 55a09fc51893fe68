#!/usr/bin/env python3
"""
Create the first campus and a SUPER_ADMIN account. Safe to run repeatedly.

Reads SEED_CAMPUS_CODE, SEED_CAMPUS_NAME, SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD
and SEED_ADMIN_NAME from the environment (or .env).
Run from project root: python scripts/seed_super_admin.py
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from labhub.auth.security import get_password_hash
from labhub.config import Settings
from labhub.db import Base, build_engine, build_session_factory
from labhub.models.enums import Role
from labhub.models.models import Campus, User


def run():
    settings = Settings()
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    db = build_session_factory(engine)()

    campus_code = os.getenv("SEED_CAMPUS_CODE", "MAIN")
    email = os.getenv("SEED_ADMIN_EMAIL", "admin@lab.com").lower()
    password = os.getenv("SEED_ADMIN_PASSWORD")
    if not password:
        print("SEED_ADMIN_PASSWORD is required")
        sys.exit(1)

    try:
        campus = db.query(Campus).filter(Campus.code == campus_code).first()
        if not campus:
            campus = Campus(name=os.getenv("SEED_CAMPUS_NAME", "Main Campus"), code=campus_code)
            db.add(campus)
            db.flush()
            print(f"[seed] Created campus {campus_code}")

        user = db.query(User).filter(User.email == email).first()
        if user:
            if user.role != Role.SUPER_ADMIN.value:
                user.role = Role.SUPER_ADMIN.value
                print(f"[seed] Upgraded {email} to SUPER_ADMIN")
            else:
                print(f"[seed] {email} is already SUPER_ADMIN")
        else:
            db.add(
                User(
                    name=os.getenv("SEED_ADMIN_NAME", "Super Admin"),
                    email=email,
                    password_hash=get_password_hash(password),
                    role=Role.SUPER_ADMIN.value,
                    campus_id=campus.id,
                )
            )
            print(f"[seed] Created SUPER_ADMIN {email}")
        db.commit()
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    run()
