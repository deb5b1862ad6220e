import pytest
from sqlalchemy.orm import sessionmaker

from database import init_db, make_engine


@pytest.fixture
def db_engine():
    eng = make_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def SessionTest(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(SessionTest):
    session = SessionTest()
    try:
        yield session
    finally:
        session.close()
