"""
Refresh every member embedding, then run a few example task searches.
    python -m scripts.refresh_embeddings

Exits 1 if anything outside the per-member / per-search isolation fails
(missing config, model load, fetching members).
"""
import logging
import sys

from src import config
from src.matching.encoder import EncoderService
from src.matching.indexer import reindex_all
from src.matching.search import format_matches, search_or_empty
from src.matching.store import MemberStore

logger = logging.getLogger(__name__)

DEMO_TASKS = [
    "Build a REST API with Python and PostgreSQL",
    "Design a responsive dashboard in React and TypeScript",
    "Need someone to query production data and build reports",
]


def run(store, encoder, tasks=DEMO_TASKS) -> dict:
    print("Initializing search system...")
    report = reindex_all(store, encoder)
    print(
        f"Embeddings refreshed: {report['updated']}/{report['total']} updated, "
        f"{report['skipped']} skipped, {len(report['failed'])} failed"
    )
    print("Search system ready with skill-based matching")

    for task in tasks:
        print(f'\nSearching for candidates matching: "{task}"')
        print(format_matches(search_or_empty(store, encoder, task)))
    return report


def main() -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    try:
        run(MemberStore.from_config(), EncoderService())
    except Exception as e:
        logger.exception("Embedding refresh failed")
        print(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
