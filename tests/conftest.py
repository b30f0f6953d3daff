import hashlib

import numpy as np
import pytest

from src.matching.encoder import EncoderConfig, EncoderService
from src.matching.errors import SearchError, StorageError
from src.matching.store import ProfileRecord


class FakeModel:
    """Deterministic stand-in for SentenceTransformer: vector seeded from the text."""

    def __init__(self, width: int = 384, fail_on: str | None = None):
        self.width = width
        self.fail_on = fail_on
        self.calls = []

    def encode(self, text, convert_to_numpy=True, normalize_embeddings=False):
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"inference failed on {self.fail_on!r}")
        seed = int(hashlib.md5(text.encode('utf-8')).hexdigest()[:8], 16)
        vector = np.random.default_rng(seed).standard_normal(self.width).astype(np.float32)
        if normalize_embeddings:
            vector = vector / np.linalg.norm(vector)
        return vector


class FakeStore:
    """In-memory member store with the MemberStore interface."""

    def __init__(self, profiles=None, rows=None):
        self.profiles = list(profiles or [])
        self.rows = rows if rows is not None else []
        self.embeddings = {}
        self.fail_updates_for = set()
        self.fetch_error = None
        self.match_error = None
        self.match_calls = []

    def fetch_profiles(self):
        if self.fetch_error:
            raise self.fetch_error
        return list(self.profiles)

    def update_embedding(self, member_id, embedding):
        if member_id in self.fail_updates_for:
            raise StorageError(f"Failed to update embedding for member {member_id}")
        self.embeddings[member_id] = list(embedding)

    def match_members(self, query_embedding, match_count, similarity_threshold):
        self.match_calls.append({
            'query_embedding': query_embedding,
            'match_count': match_count,
            'similarity_threshold': similarity_threshold,
        })
        if self.match_error:
            raise self.match_error
        return self.rows[:match_count]


def make_row(id, name, match_score, skills=None, description=None, distance=None):
    return {
        'id': id,
        'name': name,
        'description': description,
        'skills': skills or [],
        'match_score': match_score,
        'distance': 1 - match_score if distance is None else distance,
    }


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def encoder(fake_model):
    return EncoderService(EncoderConfig(model_name='fake-minilm'), loader=lambda cfg: fake_model)


@pytest.fixture
def profiles():
    return [
        ProfileRecord(id=1, name='Ravi', description='Backend engineer', skills=['python', 'fastapi']),
        ProfileRecord(id=7, name='Asha', description='data analyst', skills=['python', 'sql']),
        ProfileRecord(id=9, name='Mei', description=None, skills='react, typescript'),
    ]


@pytest.fixture
def store(profiles):
    return FakeStore(profiles=profiles)


@pytest.fixture
def failing_search_store():
    store = FakeStore()
    store.match_error = SearchError("match_members failed: connection refused")
    return store
