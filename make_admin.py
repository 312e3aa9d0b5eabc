import sys

from dotenv import load_dotenv

load_dotenv()

from eprojects.database import SessionLocal, init_db
from eprojects.models.user import User


def main() -> int:
    if len(sys.argv) != 2:
        print("Uso: python make_admin.py <email>")
        return 2

    email = sys.argv[1].strip().lower()
    if not email:
        print("Email inválido.")
        return 2

    init_db()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            print("Usuário não encontrado. Cadastre-se primeiro e rode novamente.")
            return 1

        user.role = "admin"
        user.role_expiry_date = None
        db.commit()
    finally:
        db.close()

    print(f"OK: `{email}` agora é admin.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
