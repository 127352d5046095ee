from dotenv import load_dotenv
import os

# Load .env into environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///claims_database.db")
SQL_ECHO = os.getenv("SQL_ECHO") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Attributed to migrated items when the claim has no creator
SYSTEM_USER_ID = int(os.getenv("SYSTEM_USER_ID", "1"))


def get_valid_api_keys() -> set[str]:
    keys = os.getenv("MY_API_KEYS", "")
    return {k.strip() for k in keys.split(",") if k.strip()}
