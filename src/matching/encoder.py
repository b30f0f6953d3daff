"""
Sentence-transformer encoder shared by the indexer and the search path.

One EncoderService (one model, one EncoderConfig) embeds both member profiles
and task queries; only the framing template differs between the two sides.
The model is loaded once per process and reused.
"""
import logging
import threading
import time
from dataclasses import dataclass

import numpy as np

from src import config
from src.matching.errors import EncodingError, InitializationError, ModelLoadTimeoutError
from src.metrics import embedding_errors, embedding_latency, model_load_seconds

logger = logging.getLogger(__name__)

# Each template repeats the text three times to pull the embedding towards skills.
PROFILE_TEMPLATE = (
    "Professional skills required: {text}. "
    "Candidate should have experience with: {text}. "
    "Looking for capabilities in: {text}."
)
QUERY_TEMPLATE = (
    "Seeking professionals with skills in: {text}. "
    "Requires experience with: {text}. "
    "Project needs capabilities in: {text}."
)

_TEMPLATE_SIDES = {PROFILE_TEMPLATE: 'profile', QUERY_TEMPLATE: 'query'}


@dataclass(frozen=True)
class EncoderConfig:
    model_name: str = config.EMBEDDING_MODEL
    revision: str = config.EMBEDDING_MODEL_REVISION
    pooling: str = config.EMBEDDING_POOLING
    normalize: bool = True
    dimension: int = config.EMBEDDING_DIMENSION


def load_sentence_transformer(encoder_config: EncoderConfig):
    from sentence_transformers import SentenceTransformer
    return SentenceTransformer(encoder_config.model_name, revision=encoder_config.revision)


def fit_dimension(values, dimension: int = config.EMBEDDING_DIMENSION) -> list[float]:
    """Truncate from the tail or zero-pad on the right to exactly `dimension` floats."""
    vector = np.asarray(values, dtype=np.float32).ravel()[:dimension]
    if vector.size < dimension:
        vector = np.pad(vector, (0, dimension - vector.size))
    return vector.tolist()


def _pooling_mode(model) -> str | None:
    children = getattr(model, 'children', None)
    if children is None:
        return None
    for module in children():
        if hasattr(module, 'get_pooling_mode_str'):
            return module.get_pooling_mode_str()
    return None


class EncoderService:
    """
    Lazily-loaded text -> 384-float encoder.

    initialize() is single-flight: concurrent first callers wait on the same
    lock and only one load runs. A failed load is remembered, and every later
    call raises InitializationError until the process restarts.
    """

    def __init__(self, encoder_config: EncoderConfig | None = None, loader=load_sentence_transformer,
                 load_timeout: float = config.MODEL_LOAD_TIMEOUT):
        self.config = encoder_config or EncoderConfig()
        self._loader = loader
        self._load_timeout = load_timeout
        self._model = None
        self._load_error: InitializationError | None = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        if self._model is not None:
            return
        with self._lock:
            if self._model is not None:
                return
            if self._load_error is not None:
                raise InitializationError(f"Embedding model unavailable: {self._load_error}")
            try:
                self._model = self._load()
            except InitializationError as e:
                self._load_error = e
                raise

    def _load(self):
        logger.info(f"Loading embedding model: {self.config.model_name} (revision {self.config.revision})")
        start = time.time()
        outcome = {}

        def run_loader():
            try:
                outcome['model'] = self._loader(self.config)
            except Exception as e:
                outcome['error'] = e

        # Daemon: a load that never returns must not block interpreter exit.
        loader_thread = threading.Thread(target=run_loader, name='model-load', daemon=True)
        loader_thread.start()
        loader_thread.join(self._load_timeout)

        if loader_thread.is_alive():
            logger.error(f"Embedding model did not load within {self._load_timeout}s")
            raise ModelLoadTimeoutError(
                f"Loading {self.config.model_name} timed out after {self._load_timeout}s"
            )
        if 'error' in outcome:
            e = outcome['error']
            logger.error(f"Failed to load embedding model: {e}")
            raise InitializationError(f"Failed to initialize embedding model: {e}") from e
        model = outcome['model']

        pooling = _pooling_mode(model)
        if pooling is not None and pooling != self.config.pooling:
            raise InitializationError(
                f"{self.config.model_name} uses {pooling} pooling, expected {self.config.pooling}"
            )

        elapsed = time.time() - start
        model_load_seconds.observe(elapsed)
        logger.info(f"Embedding model loaded ({elapsed:.1f}s)")
        return model

    def encode(self, text: str, template: str = PROFILE_TEMPLATE) -> list[float]:
        """
        Frame `text` with `template`, embed it with mean pooling + L2 norm and
        return exactly config.dimension floats.
        Raises InitializationError if the model cannot load, EncodingError otherwise.
        """
        self.initialize()

        if not text or not text.strip():
            raise EncodingError("Cannot encode empty text")

        side = _TEMPLATE_SIDES.get(template, 'custom')
        start = time.time()
        try:
            output = self._model.encode(
                template.format(text=text),
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
            vector = fit_dimension(output, self.config.dimension)
        except Exception as e:
            embedding_errors.labels(side=side).inc()
            raise EncodingError(f"Failed to generate embedding: {e}") from e

        embedding_latency.labels(side=side).observe(time.time() - start)
        return vector
