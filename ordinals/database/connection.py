from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ordinals.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# API reads run in one snapshot so a response and its fingerprint agree
read_engine = (
    engine.execution_options(isolation_level="REPEATABLE READ") if engine.dialect.name == "postgresql" else engine
)
ReadSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=read_engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_db():
    db = ReadSessionLocal()
    try:
        yield db
    finally:
        db.close()
