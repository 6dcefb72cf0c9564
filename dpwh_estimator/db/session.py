import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dpwh_estimator.core.config import settings

sslmode = os.getenv("PGSSLMODE") or os.getenv("DB_SSLMODE")
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg://{settings.DB_USER}:{settings.DB_PASSWORD}"
    f"@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
)
if sslmode and "sslmode=" not in DATABASE_URL:
    sep = "&" if "?" in DATABASE_URL else "?"
    DATABASE_URL = f"{DATABASE_URL}{sep}sslmode={sslmode}"

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
