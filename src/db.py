from functools import lru_cache

from sqlalchemy import create_engine, Column, Integer, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import UserDefinedType

from src import config

Base = declarative_base()


def to_vector_literal(values) -> str:
    """Render a float sequence as a pgvector text literal, e.g. '[0.1,0.2]'."""
    return '[' + ','.join(repr(float(v)) for v in values) + ']'


def from_vector_literal(value: str) -> list[float]:
    inner = value.strip()[1:-1]
    return [float(v) for v in inner.split(',')] if inner else []


class Vector(UserDefinedType):
    """pgvector column. Sent and received as the text form, which Postgres casts to vector(n)."""

    cache_ok = True

    def __init__(self, dimension: int):
        self.dimension = dimension

    def get_col_spec(self, **kw):
        return f'VECTOR({self.dimension})'

    def bind_processor(self, dialect):
        def process(value):
            return None if value is None else to_vector_literal(value)
        return process

    def result_processor(self, dialect, coltype):
        def process(value):
            if value is None or isinstance(value, list):
                return value
            return from_vector_literal(value)
        return process


class Member(Base):
    """
    Member profile row. The table is owned by the team app; this service only
    reads id/name/description/skills and writes embedding.
    """
    __tablename__ = "members"

    id = Column(Integer, primary_key=True)
    name = Column(Text)
    description = Column(Text)
    skills = Column(ARRAY(Text))
    embedding = Column(Vector(config.EMBEDDING_DIMENSION))


@lru_cache(maxsize=1)
def get_engine():
    """
    Build the engine from STORE_URL + STORE_SERVICE_KEY.
    Raises ConfigurationError if either is missing.
    """
    store_url, service_key = config.require_store_settings()
    url = make_url(store_url).set(password=service_key)
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args={'options': f'-c statement_timeout={config.STORE_STATEMENT_TIMEOUT_MS}'},
    )


def get_session_factory():
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
