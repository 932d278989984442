# make_admin.py
import sys

from catalogo.database import Base, SessionLocal, engine
from catalogo.models import User, UserRole


def promote(db, email: str) -> bool:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        return False
    user.role = UserRole.ADMIN
    db.commit()
    return True


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    email = (argv[0] if argv else "").strip().lower()
    if not email:
        print("Uso: python make_admin.py email@dominio.com")
        return 1
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if not promote(db, email):
            print("Nenhum usuário com esse e-mail.")
            return 2
    finally:
        db.close()
    print("✅ Promovido a admin:", email, "no banco:", engine.url.render_as_string(hide_password=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
