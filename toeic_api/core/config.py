import os


def _bool_env(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./toeic.db")

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

# ✅ App
APP_NAME = "ChatTOEIC"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE = _bool_env("LOG_TO_FILE", "1")
SLOW_REQUEST_THRESHOLD_MS = int(os.getenv("SLOW_REQUEST_THRESHOLD_MS", "5000"))

# ✅ Startup
RUN_MIGRATIONS = _bool_env("RUN_MIGRATIONS")
RUN_SCHEMA_PATCHES = _bool_env("RUN_SCHEMA_PATCHES")

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

# ✅ Question generation
QUESTION_COUNT_MIN = int(os.getenv("QUESTION_COUNT_MIN", "1"))
QUESTION_COUNT_MAX = int(os.getenv("QUESTION_COUNT_MAX", "20"))

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_WEBHOOK_TOLERANCE_SECONDS = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE_SECONDS", "300"))
STRIPE_PRICE_ID_PREMIUM_MONTHLY = os.getenv("STRIPE_PRICE_ID_PREMIUM_MONTHLY")
STRIPE_PRICE_ID_PREMIUM_YEARLY = os.getenv("STRIPE_PRICE_ID_PREMIUM_YEARLY")

# ✅ Google OAuth
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CALLBACK_URL = os.getenv("GOOGLE_CALLBACK_URL", "http://localhost:3000/api/auth/google/callback")

# ✅ Email (SMTP)
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_USE_TLS = _bool_env("SMTP_USE_TLS", "1")
SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "20"))
EMAIL_FROM = os.getenv("EMAIL_FROM", "ChatTOEIC <noreply@chattoeic.com>")

# ✅ Rate limiting (window values are milliseconds, matching the deploy env)
RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", "1")
RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000)))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
SLOW_DOWN_WINDOW_MS = int(os.getenv("SLOW_DOWN_WINDOW_MS", str(15 * 60 * 1000)))
SLOW_DOWN_DELAY_AFTER = int(os.getenv("SLOW_DOWN_DELAY_AFTER", "50"))
SLOW_DOWN_DELAY_MS = int(os.getenv("SLOW_DOWN_DELAY_MS", "500"))
SLOW_DOWN_MAX_DELAY_MS = int(os.getenv("SLOW_DOWN_MAX_DELAY_MS", "5000"))

# ✅ Billing
BILLING_CACHE_TTL_SECONDS = int(os.getenv("BILLING_CACHE_TTL_SECONDS", "600"))
TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "3"))
TRIAL_MAX_PER_IP = int(os.getenv("TRIAL_MAX_PER_IP", "3"))
TRIAL_IP_WINDOW_DAYS = int(os.getenv("TRIAL_IP_WINDOW_DAYS", "7"))

# ✅ Account emails
EMAIL_VERIFICATION_CODE_MINUTES = int(os.getenv("EMAIL_VERIFICATION_CODE_MINUTES", "10"))
EMAIL_VERIFICATION_MAX_ATTEMPTS = int(os.getenv("EMAIL_VERIFICATION_MAX_ATTEMPTS", "5"))
EMAIL_VERIFICATION_RESEND_SECONDS = int(os.getenv("EMAIL_VERIFICATION_RESEND_SECONDS", "300"))
PASSWORD_RESET_TOKEN_MINUTES = int(os.getenv("PASSWORD_RESET_TOKEN_MINUTES", "60"))
PASSWORD_RESET_MAX_ACTIVE = int(os.getenv("PASSWORD_RESET_MAX_ACTIVE", "3"))
