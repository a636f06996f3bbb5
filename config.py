import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ------------------ SERVER ------------------
DB_URI       = os.getenv("DB_URI", "sqlite:///cipher_room.db")
SECRET_KEY   = os.getenv("SECRET_KEY", "dev")
PORT         = int(os.getenv("PORT", "5050"))
ASYNC_MODE   = os.getenv("ASYNC_MODE", "eventlet")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
LOG_LEVEL    = os.getenv("LOG_LEVEL", "INFO").upper()

# ------------------ ROOMS ------------------
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"   # sans I, O, 0, 1
ROOM_CODE_LENGTH   = int(os.getenv("ROOM_CODE_LENGTH", "8"))
MAX_PLAYERS        = int(os.getenv("MAX_PLAYERS", "6"))
MIN_PLAYERS        = int(os.getenv("MIN_PLAYERS", "2"))
CHAT_MAX_LENGTH    = int(os.getenv("CHAT_MAX_LENGTH", "500"))

# ------------------ TYPING LOCK ------------------
TYPING_LOCK_TTL_SEC       = float(os.getenv("TYPING_LOCK_TTL_SEC", "3"))
TYPING_RENEW_INTERVAL_SEC = float(os.getenv("TYPING_RENEW_INTERVAL_SEC", "2"))

# ------------------ PRESENCE ------------------
PRESENCE_SWEEP          = _flag("PRESENCE_SWEEP", "1")
HEARTBEAT_INTERVAL_SEC  = float(os.getenv("HEARTBEAT_INTERVAL_SEC", "30"))
SWEEP_INTERVAL_SEC      = float(os.getenv("SWEEP_INTERVAL_SEC", "60"))
INACTIVITY_TIMEOUT_SEC  = float(os.getenv("INACTIVITY_TIMEOUT_SEC", "120"))
ROOM_MAX_AGE_SEC        = float(os.getenv("ROOM_MAX_AGE_SEC", str(24 * 60 * 60)))

# ------------------ PASSCODES ------------------
ENTRY_PASSCODE = os.getenv("ENTRY_PASSCODE", "INVESTIGATE")
FINAL_PASSCODE = os.getenv("FINAL_PASSCODE", "N738VN")

# ------------------ CLIENT ------------------
SERVER_URL       = os.getenv("CIPHER_ROOM_URL", "http://localhost:5050")
STATE_PATH       = os.getenv("CIPHER_ROOM_STATE", os.path.join("~", ".cipher_room", "session.json"))
CALL_TIMEOUT_SEC = float(os.getenv("CALL_TIMEOUT_SEC", "5"))
