import os
from dotenv import load_dotenv

load_dotenv()

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

LLM_CONFIG = {
    "config_list": [
        {
            "model": GEMINI_MODEL,
            "api_key": GEMINI_API_KEY,
            "api_type": "google",
        }
    ],
    "temperature": 0.2,
}

AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

DB_PATH = os.getenv(
    "TASKBOARD_DB_PATH",
    os.path.join(os.path.dirname(__file__), "..", "db", "taskboard.db"),
)

INVITE_TTL_DAYS = 7
DEFAULT_BOARD_BACKGROUND = "#0079bf"
