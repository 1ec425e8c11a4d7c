import sys

from sqlalchemy import select

from grownet.authorization import Role
from grownet.database import Base, SessionLocal, engine
from grownet.models.user import User


def main(session_factory=SessionLocal, bind=engine):
    Base.metadata.create_all(bind=bind)

    email = input("Email: ").strip().lower()
    name = input("Name: ").strip()
    password = input("Password: ").strip()

    if not all([email, name, password]):
        print("All fields are required.")
        sys.exit(1)

    db = session_factory()
    try:
        existing = db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

        if existing:
            print(f"User with email {email} already exists.")
            sys.exit(1)

        user = User(email=email, name=name, role=Role.ADMIN, password_hash="")
        user.set_password(password)
        db.add(user)
        db.commit()
        print(f"Admin user '{name}' created successfully.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
