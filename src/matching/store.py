"""
Member store adapter: the three storage calls the matching engine makes.

    fetch_profiles()     SELECT id, name, description, skills FROM members
    update_embedding()   UPDATE members SET embedding = ... WHERE id = ...
    match_members()      SELECT * FROM match_members(...)  (server-side ranking)
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from src.db import Member, get_session_factory, to_vector_literal
from src.matching.errors import SearchError, SearchTimeoutError, StorageError
from src.matching.profile_text import normalize_skills

logger = logging.getLogger(__name__)

QUERY_CANCELED = '57014'  # Postgres SQLSTATE raised when statement_timeout fires

MATCH_MEMBERS_SQL = text(
    "SELECT * FROM match_members("
    "CAST(:query_embedding AS vector), :match_count, :similarity_threshold)"
)


@dataclass
class ProfileRecord:
    id: int
    name: str | None = None
    description: str | None = None
    skills: list[str] = field(default_factory=list)


def _is_statement_timeout(exc: Exception) -> bool:
    return isinstance(exc, OperationalError) and getattr(exc.orig, 'pgcode', None) == QUERY_CANCELED


class MemberStore:

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @classmethod
    def from_config(cls) -> 'MemberStore':
        """Raises ConfigurationError when STORE_URL / STORE_SERVICE_KEY are unset."""
        return cls(get_session_factory())

    def fetch_profiles(self) -> list[ProfileRecord]:
        """All members in storage order. Skills come back as a list whatever the column held."""
        db = self._session_factory()
        try:
            rows = db.query(Member.id, Member.name, Member.description, Member.skills).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch members: {e}") from e
        finally:
            db.close()

        return [
            ProfileRecord(
                id=row.id,
                name=row.name,
                description=row.description,
                skills=normalize_skills(row.skills),
            )
            for row in rows
        ]

    def update_embedding(self, member_id: int, embedding: list[float]) -> None:
        db = self._session_factory()
        try:
            updated = (
                db.query(Member)
                .filter_by(id=member_id)
                .update({Member.embedding: embedding}, synchronize_session=False)
            )
            if updated == 0:
                db.rollback()
                raise StorageError(f"Member {member_id} not found")
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to update embedding for member {member_id}: {e}") from e
        finally:
            db.close()

    def match_members(self, query_embedding: list[float], match_count: int,
                      similarity_threshold: float) -> list[dict]:
        """
        Call the match_members procedure and return its rows as dicts.
        Raises SearchTimeoutError on statement_timeout, SearchError otherwise.
        """
        db = self._session_factory()
        try:
            result = db.execute(MATCH_MEMBERS_SQL, {
                'query_embedding': to_vector_literal(query_embedding),
                'match_count': match_count,
                'similarity_threshold': similarity_threshold,
            })
            return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            if _is_statement_timeout(e):
                raise SearchTimeoutError("match_members timed out") from e
            raise SearchError(f"match_members failed: {e}") from e
        finally:
            db.close()
