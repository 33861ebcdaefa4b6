import os
from dotenv import load_dotenv

# Load .env from the backend directory
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "..", ".env"))

# Identity provider tokens (verification only; issuance happens upstream)
SECRET_KEY: str = os.getenv("SECRET_KEY", "eduflow-dev-secret-change-in-prod")
ALGORITHM: str = os.getenv("ALGORITHM", "HS256")

# Database: stored in backend/data/
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(BASE_DIR, "..", ".."))

DATABASE_PATH: str = os.getenv(
    "DATABASE_PATH",
    os.path.join(BACKEND_DIR, "data", "eduflow.db"),
)

# "sqlite" or "memory"
STORE: str = os.getenv("EDUFLOW_STORE", "sqlite").strip().lower()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Attempts the HTTP layer makes on a write that lost an optimistic-lock race
WRITE_RETRIES: int = int(os.getenv("EDUFLOW_WRITE_RETRIES", "3"))

# When true, admins may add/remove collaborators on content they do not own
ADMIN_MANAGES_COLLABORATORS: bool = os.getenv(
    "EDUFLOW_ADMIN_MANAGES_COLLABORATORS", "false"
).strip().lower() in ("1", "true", "yes")
