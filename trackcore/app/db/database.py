from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from trackcore import config

# FastAPI runs sync endpoints on a thread pool
_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        project_id TEXT,
        subsystem_id TEXT,
        title TEXT NOT NULL DEFAULT '',
        estimate_days REAL,
        actual_days REAL NOT NULL DEFAULT 0,
        priority TEXT NOT NULL DEFAULT 'MEDIUM',
        progress INTEGER NOT NULL DEFAULT 0,
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        start_date DATE,
        end_date DATE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_members (
        task_id TEXT NOT NULL,
        member_id TEXT NOT NULL,
        PRIMARY KEY (task_id, member_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dependencies (
        task_id TEXT NOT NULL,
        depends_on TEXT NOT NULL,
        PRIMARY KEY (task_id, depends_on)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS milestones (
        id TEXT PRIMARY KEY,
        project_id TEXT,
        name TEXT NOT NULL,
        date DATE NOT NULL,
        description TEXT
    )
    """,
]


def init_schema(bind: Engine = engine) -> None:
    with bind.begin() as conn:
        for stmt in SCHEMA:
            conn.execute(text(stmt))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
