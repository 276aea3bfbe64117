import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./forum.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "4320"))  # 3 days

# every store call is bounded by this (seconds)
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5.0"))

DELETED_POST_PLACEHOLDER = os.getenv("DELETED_POST_PLACEHOLDER", "[deleted]")
TOPIC_SNIPPET_LENGTH = int(os.getenv("TOPIC_SNIPPET_LENGTH", "150"))

TOPICS_PAGE_SIZE = int(os.getenv("TOPICS_PAGE_SIZE", "15"))
REPLIES_PAGE_SIZE = int(os.getenv("REPLIES_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
FORUM_TOPIC_CREATE_RATE = os.getenv("FORUM_TOPIC_CREATE_RATE", "3/minute;20/hour;60/day")
FORUM_REPLY_CREATE_RATE = os.getenv("FORUM_REPLY_CREATE_RATE", "6/minute;40/hour;150/day")
FORUM_LIKE_RATE = os.getenv("FORUM_LIKE_RATE", "30/minute;1000/day")
FORUM_TAG_CREATE_RATE = os.getenv("FORUM_TAG_CREATE_RATE", "10/minute;100/day")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
