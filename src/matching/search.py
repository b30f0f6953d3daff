"""
Task -> ranked members.

The ranking itself happens in the match_members procedure; this module
validates the task, builds the query vector, and formats what comes back.
"""
import logging
import time
from decimal import Decimal, ROUND_HALF_UP

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator

from src import config
from src.matching.encoder import QUERY_TEMPLATE
from src.matching.errors import MatchingError, SearchError, SearchTimeoutError, ValidationError
from src.matching.profile_text import normalize_skills
from src.metrics import search_errors, search_latency, search_results

logger = logging.getLogger(__name__)


class MatchResult(BaseModel):
    id: int
    name: str | None = None
    description: str | None = None
    skills: list[str] = []
    match_score: float
    distance: float | None = None
    similarity: str

    @field_validator('skills', mode='before')
    @classmethod
    def _skills_as_list(cls, value):
        return normalize_skills(value)


def format_similarity(match_score: float) -> str:
    """match_score 0.8312 -> '83.1%'. Halves round away from zero."""
    percent = Decimal(match_score * 100).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
    return f"{percent}%"


def build_match_result(row: dict) -> MatchResult:
    """Raises SearchError if the procedure returned a row without id or match_score."""
    try:
        return MatchResult(**{**row, 'similarity': format_similarity(float(row['match_score']))})
    except (KeyError, TypeError, ValueError, ArithmeticError, PydanticValidationError) as e:
        raise SearchError(f"Malformed match_members row: {e}") from e


def validate_task(task) -> str:
    if not isinstance(task, str) or not task.strip():
        raise ValidationError("Task description cannot be empty")
    return task.strip()


def search_by_task(store, encoder, task: str, match_count: int = config.DEFAULT_MATCH_COUNT,
                   similarity_threshold: float = config.MATCH_SIMILARITY_THRESHOLD) -> list[MatchResult]:
    """
    Rank members against a free-text task description.

    Returns [] when nothing clears the threshold.
    Raises:
        ValidationError: blank task or non-positive match_count (before any model/storage work)
        InitializationError / EncodingError: the query could not be embedded
        SearchError: match_members failed or returned malformed rows
        SearchTimeoutError: match_members exceeded the statement timeout
    """
    task = validate_task(task)
    if isinstance(match_count, bool) or not isinstance(match_count, int) or match_count < 1:
        raise ValidationError(f"matchCount must be a positive integer, got {match_count!r}")

    logger.info(f'Searching for candidates matching: "{task}"')
    start = time.time()

    query_embedding = encoder.encode(task, template=QUERY_TEMPLATE)

    try:
        rows = store.match_members(query_embedding, match_count, similarity_threshold)
    except SearchTimeoutError:
        search_errors.labels(error_type='timeout').inc()
        raise
    except SearchError:
        search_errors.labels(error_type='procedure').inc()
        raise

    if rows is None or not isinstance(rows, list):
        search_errors.labels(error_type='malformed').inc()
        raise SearchError(f"match_members returned {type(rows).__name__}, expected a list of rows")

    try:
        results = [build_match_result(row) for row in rows]
    except SearchError:
        search_errors.labels(error_type='malformed').inc()
        raise

    search_latency.observe(time.time() - start)
    search_results.observe(len(results))

    if not results:
        logger.info("No suitable matches found")
    else:
        logger.info(f"Found {len(results)} matches, top: {results[0].name} ({results[0].similarity})")
    return results


def search_or_empty(store, encoder, task: str, match_count: int = config.DEFAULT_MATCH_COUNT) -> list[MatchResult]:
    """Script-side search: logs any matching failure and returns [] so one bad task doesn't stop the rest."""
    try:
        return search_by_task(store, encoder, task, match_count)
    except MatchingError as e:
        logger.error(f'Search failed for "{task}": {e}')
        return []


def format_matches(results: list[MatchResult]) -> str:
    if not results:
        return 'No suitable matches found'

    lines = ['TOP MATCHES:', '=' * 60]
    for rank, member in enumerate(results, start=1):
        skills = ', '.join(member.skills) if member.skills else 'No skills listed'
        distance = f"{member.distance:.4f}" if member.distance is not None else 'N/A'
        lines += [
            '',
            f"#{rank}: {member.name} ({member.similarity} match)",
            f"- Skills: {skills}",
            f"- Description: {member.description or 'Not provided'}",
            f"- Distance: {distance}",
        ]
    lines.append('=' * 60)
    return '\n'.join(lines)
