# database.py
# 감사 이력 저장소 연결(기본 SQLite 파일)
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from models.audit import Base

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./audit.db")

def make_engine(url: str):
    """
    URL에 맞는 엔진을 만든다. 'sqlite://'(메모리)는 연결 하나를 공유해야 테이블이 유지된다.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
