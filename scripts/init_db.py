"""
Add the embedding column and the match_members procedure to the member store.
The members table itself belongs to the team app and must already exist.
Safe to re-run:
    python -m scripts.init_db
"""
from sqlalchemy import text

from src import config
from src.db import get_engine

DIMENSION = config.EMBEDDING_DIMENSION

STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS vector",
    f"ALTER TABLE members ADD COLUMN IF NOT EXISTS embedding vector({DIMENSION})",
    f"""
    CREATE OR REPLACE FUNCTION match_members(
        query_embedding vector({DIMENSION}),
        match_count int,
        similarity_threshold float
    )
    RETURNS TABLE (
        id int,
        name text,
        description text,
        skills text[],
        match_score float,
        distance float
    )
    LANGUAGE sql STABLE
    AS $$
        SELECT
            m.id,
            m.name,
            m.description,
            m.skills,
            1 - (m.embedding <=> query_embedding) AS match_score,
            m.embedding <=> query_embedding AS distance
        FROM members m
        WHERE m.embedding IS NOT NULL
          AND 1 - (m.embedding <=> query_embedding) >= similarity_threshold
        ORDER BY m.embedding <=> query_embedding
        LIMIT match_count
    $$
    """,
]


def main():
    print("Installing embedding column and match_members()...")
    with get_engine().begin() as conn:
        for statement in STATEMENTS:
            conn.execute(text(statement))
    print("Done.")


if __name__ == "__main__":
    main()
