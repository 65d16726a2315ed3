import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import get_db_url, normalize_db_url, settings

logger = logging.getLogger(__name__)

raw_url = get_db_url(settings)
normalized_url = normalize_db_url(raw_url)
url_obj = make_url(normalized_url)
if url_obj.drivername.startswith("mysql") and url_obj.drivername != "mysql+pymysql":
    url_obj = url_obj.set(drivername="mysql+pymysql")

# Ensure utf8mb4 for MySQL connections
if url_obj.drivername.startswith("mysql"):
    query = dict(url_obj.query) if url_obj.query else {}
    query.setdefault("charset", "utf8mb4")
    url_obj = url_obj.set(query=query)

DATABASE_URL = url_obj.render_as_string(hide_password=False)

connect_args: dict = {}
if url_obj.drivername.startswith("mysql"):
    ca_path = os.getenv("DB_SSL_CA")
    if ca_path:
        connect_args["ssl"] = {"ca": ca_path}
    connect_args.setdefault("charset", "utf8mb4")
elif url_obj.drivername.startswith("sqlite"):
    # Worker threads share the file; writers wait on each other's locks instead of failing fast.
    connect_args["check_same_thread"] = False
    connect_args["timeout"] = 30

safe_url = url_obj.set(password="***").render_as_string(hide_password=False)
logger.info("Connecting DB with URL: %s", safe_url)

engine = create_engine(DATABASE_URL, echo=False, future=True, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
