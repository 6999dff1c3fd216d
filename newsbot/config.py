"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("NEWSBOT_DATA_DIR", str(BASE_DIR / "data")))

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Vector index
DB_PATH = DATA_DIR / "newsbot.sqlite"
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "news_articles")
VECTOR_DISTANCE = os.getenv("VECTOR_DISTANCE", "cosine")

# Jina embeddings
JINA_API_KEY = os.getenv("JINA_API_KEY", "")
JINA_API_URL = os.getenv("JINA_API_URL", "https://api.jina.ai/v1/embeddings")
JINA_MODEL = os.getenv("JINA_MODEL", "jina-embeddings-v2-base-en")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "768"))
EMBEDDING_MAX_CHARS = int(os.getenv("EMBEDDING_MAX_CHARS", "8000"))
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "30.0"))

# Gemini generation
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "60.0"))
GEMINI_MAX_RETRIES = int(os.getenv("GEMINI_MAX_RETRIES", "5"))
GEMINI_BASE_DELAY = float(os.getenv("GEMINI_BASE_DELAY", "1.0"))   # seconds
GEMINI_MAX_DELAY = float(os.getenv("GEMINI_MAX_DELAY", "30.0"))    # seconds
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
GEMINI_TOP_K = int(os.getenv("GEMINI_TOP_K", "40"))
GEMINI_TOP_P = float(os.getenv("GEMINI_TOP_P", "0.95"))
GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "1024"))

# RAG parameters (character-based)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "500"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "50"))
MIN_CHUNK_LENGTH = int(os.getenv("MIN_CHUNK_LENGTH", "50"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "5"))
RELEVANCE_THRESHOLD = float(os.getenv("RELEVANCE_THRESHOLD", "0.3"))
SNIPPET_LENGTH = int(os.getenv("SNIPPET_LENGTH", "150"))

# Ingestion
INGEST_FLUSH_EVERY = int(os.getenv("INGEST_FLUSH_EVERY", "10"))             # documents
INGEST_THROTTLE_SECONDS = float(os.getenv("INGEST_THROTTLE_SECONDS", "0.3"))
SEED_ON_EMPTY_INDEX = os.getenv("SEED_ON_EMPTY_INDEX", "false").lower() == "true"

# News feeds
NEWS_FEEDS = [
    url.strip()
    for url in os.getenv(
        "NEWS_FEEDS",
        "https://feeds.bbci.co.uk/news/world/rss.xml,"
        "https://rss.cnn.com/rss/edition.rss,"
        "https://feeds.reuters.com/reuters/topNews,"
        "https://feeds.skynews.com/feeds/rss/world.xml",
    ).split(",")
    if url.strip()
]
FEED_ITEM_LIMIT = int(os.getenv("FEED_ITEM_LIMIT", "15"))
FEED_TIMEOUT = float(os.getenv("FEED_TIMEOUT", "10.0"))
FEED_DELAY_SECONDS = float(os.getenv("FEED_DELAY_SECONDS", "1.0"))

# Sessions
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
SESSION_MAX_MESSAGES = int(os.getenv("SESSION_MAX_MESSAGES", "50"))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
