from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )
    if engine.dialect.name == "sqlite":
        serialize_sqlite_transactions(engine)
    return engine


def serialize_sqlite_transactions(engine: Engine) -> None:
    """
    SQLite has no row locks and ignores FOR UPDATE, so every transaction
    takes the database write lock up front with BEGIN IMMEDIATE. Concurrent
    transitions then run one after another, and each one reads the state the
    previous one committed.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise defer BEGIN until the first write.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_session_factory(engine: Engine) -> sessionmaker:
    # Handlers return ORM rows after their transaction commits.
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
