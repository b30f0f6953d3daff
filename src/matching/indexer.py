"""
Embedding refresh: recompute and store the embedding of every member.
"""
import logging
import time

from src.matching.encoder import PROFILE_TEMPLATE
from src.matching.errors import EncodingError, StorageError
from src.matching.profile_text import build_profile_text
from src.metrics import indexer_duration, indexer_profiles

logger = logging.getLogger(__name__)


def reindex_all(store, encoder) -> dict:
    """
    Rebuild embeddings for all members, one at a time, in storage order.

    A member that fails to encode or save is logged and skipped; the rest of the
    batch still runs and earlier writes are kept.

    Returns:
        {
            'total': int,
            'updated': int,
            'skipped': int,   # nothing to embed
            'failed': [member_id, ...]
        }
    Raises InitializationError if the model cannot load, StorageError if the
    member list cannot be fetched.
    """
    start = time.time()
    encoder.initialize()

    logger.info("Starting embedding updates with skill focus...")
    profiles = store.fetch_profiles()
    total = len(profiles)
    updated = 0
    skipped = 0
    failed = []

    if not profiles:
        logger.info("No members found")

    for index, profile in enumerate(profiles, start=1):
        profile_text = build_profile_text(profile)
        if profile_text is None:
            logger.info(f"Skipping member {profile.id} - no searchable content")
            indexer_profiles.labels(outcome='skipped').inc()
            skipped += 1
            continue

        try:
            embedding = encoder.encode(profile_text, template=PROFILE_TEMPLATE)
            store.update_embedding(profile.id, embedding)
        except (EncodingError, StorageError) as e:
            logger.error(f"Error processing member {profile.id}: {e}")
            indexer_profiles.labels(outcome='failed').inc()
            failed.append(profile.id)
            continue

        indexer_profiles.labels(outcome='updated').inc()
        updated += 1
        logger.info(f"[{index}/{total}] Updated {profile.name or 'member'} (ID: {profile.id})")

    indexer_duration.observe(time.time() - start)
    logger.info(
        f"Embedding update complete: {updated} updated, {skipped} skipped, "
        f"{len(failed)} failed ({time.time() - start:.1f}s)"
    )
    return {'total': total, 'updated': updated, 'skipped': skipped, 'failed': failed}
