from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker
import os

# Uma única string de conexão configura o banco (Postgres em produção, SQLite local)
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./eprojects.db")


def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, connect_args=connect_args)


# O engine é o "motor" que se conecta ao banco
engine = build_engine(SQLALCHEMY_DATABASE_URL)

# O SessionLocal é a "fábrica" de sessões para o banco
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# A Base é a classe que os modelos (User, Tool, Course...) vão herdar
Base = declarative_base()


# Colunas adicionadas depois da primeira versão do schema.
# create_all não altera tabelas existentes; aqui só fazemos ALTER.
_ADDED_COLUMNS = {
    "promo_codes": {
        "promo_type": "VARCHAR NOT NULL DEFAULT 'role'",
        "course_id": "INTEGER",
        "valid_until": "TIMESTAMP",
        "expiry_date": "TIMESTAMP",
    },
    "tools": {
        "restricted_cpfs": "VARCHAR",
        "average_rating": "NUMERIC(3, 2) DEFAULT 0",
        "total_ratings": "INTEGER NOT NULL DEFAULT 0",
    },
    "users": {
        "role_expiry_date": "TIMESTAMP",
        "disable_password_recovery": "BOOLEAN NOT NULL DEFAULT FALSE",
        "last_login": "TIMESTAMP",
    },
}


def ensure_added_columns(bind=None) -> list[str]:
    bind = bind or engine
    added = []
    inspector = inspect(bind)
    existing_tables = set(inspector.get_table_names())

    with bind.begin() as con:
        for table, columns in _ADDED_COLUMNS.items():
            # Se a tabela não existir ainda, o create_all vai criar
            if table not in existing_tables:
                continue
            cols = {c["name"] for c in inspector.get_columns(table)}
            for name, ddl in columns.items():
                if name not in cols:
                    con.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
                    added.append(f"{table}.{name}")
    return added


def init_db(bind=None) -> None:
    # Importante importar os modelos para que o Base.metadata os reconheça
    from eprojects.models import chat, course, notification, plan_price, promo, tool, user  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    ensure_added_columns(bind)


# Função que o FastAPI usa para abrir e fechar o banco automaticamente
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
