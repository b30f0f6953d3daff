import os
from dotenv import load_dotenv

from src.matching.errors import ConfigurationError

load_dotenv()

# Member store (Postgres with pgvector). The service key is the privileged
# database password; it is kept out of STORE_URL so the URL can be logged.
STORE_URL = os.getenv('STORE_URL')
STORE_SERVICE_KEY = os.getenv('STORE_SERVICE_KEY')
STORE_STATEMENT_TIMEOUT_MS = int(os.getenv('STORE_STATEMENT_TIMEOUT_MS', 10000))

# Embedding model
EMBEDDING_MODEL = os.getenv('EMBEDDING_MODEL', 'sentence-transformers/all-MiniLM-L6-v2')
EMBEDDING_MODEL_REVISION = os.getenv('EMBEDDING_MODEL_REVISION', 'main')
EMBEDDING_POOLING = 'mean'
EMBEDDING_DIMENSION = 384  # must match the vector(384) column and match_members()
MODEL_LOAD_TIMEOUT = float(os.getenv('MODEL_LOAD_TIMEOUT', 120))

# Matching
# 0.2 is deliberately loose; the procedure drops anything below it.
MATCH_SIMILARITY_THRESHOLD = float(os.getenv('MATCH_SIMILARITY_THRESHOLD', 0.2))
DEFAULT_MATCH_COUNT = int(os.getenv('DEFAULT_MATCH_COUNT', 5))
MAX_MATCH_COUNT = 50

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def require_store_settings() -> tuple[str, str]:
    """
    Return (STORE_URL, STORE_SERVICE_KEY).
    Raises ConfigurationError naming every missing variable.
    """
    missing = [
        name for name, value in (('STORE_URL', STORE_URL), ('STORE_SERVICE_KEY', STORE_SERVICE_KEY))
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
    return STORE_URL, STORE_SERVICE_KEY
