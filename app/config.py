import os
from dotenv import load_dotenv, find_dotenv

dotenv_path = find_dotenv(usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path)


def _getfloat(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _getint(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


class Config:
    def __init__(self):

        self.SECRET_KEY = os.getenv("SECRET_KEY")
        self.SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.APP_URL = os.getenv("APP_URL", "http://localhost:5000")

        # Intuit / QuickBooks Online
        self.QB_CLIENT_ID = os.getenv("QB_CLIENT_ID")
        self.QB_CLIENT_SECRET = os.getenv("QB_CLIENT_SECRET")
        self.QB_REDIRECT_URI = os.getenv("QB_REDIRECT_URI")
        self.QB_ENVIRONMENT = os.getenv("QB_ENVIRONMENT", "sandbox")

        self.OPENAI_API_BASE = os.getenv("OPENAI_API_BASE")
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.OPENAI_MODEL_NAME = os.getenv("OPENAI_MODEL_NAME", "gpt-4-turbo-preview")
        self.OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")

        self.PINECONE_API_KEY = os.getenv("PINECONE_API_KEY")
        self.PINECONE_INDEX_NAME = os.getenv("PINECONE_INDEX_NAME", "qb-categorization")

        self.CLERK_WEBHOOK_SECRET = os.getenv("CLERK_WEBHOOK_SECRET")

        self.AI_HIGH_CONFIDENCE = _getfloat("AI_HIGH_CONFIDENCE", 0.9)
        self.AI_MEDIUM_CONFIDENCE = _getfloat("AI_MEDIUM_CONFIDENCE", 0.75)
        self.AI_SIMILARITY_THRESHOLD = _getfloat("AI_SIMILARITY_THRESHOLD", 0.8)

        self.SYNC_LOOKBACK_DAYS = _getint("SYNC_LOOKBACK_DAYS", 90)
        self.CATEGORIZE_BATCH_LIMIT = _getint("CATEGORIZE_BATCH_LIMIT", 100)
        self.SECONDS_SAVED_PER_TRANSACTION = _getint("SECONDS_SAVED_PER_TRANSACTION", 90)

        if not self.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL is not set in your .env file or environment variables. "
                             "The application cannot start without it.")
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY is not set in your .env file or environment variables.")
