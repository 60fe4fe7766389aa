import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./rideshare.db")
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")  # sql, memory
SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")

JWT_SECRET = os.getenv("JWT_SECRET", "campus-rideshare-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Ride posting limits
MIN_SEATS = 1
MAX_SEATS = 7
