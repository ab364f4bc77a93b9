import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./resumeforge.db")

# ✅ Auth (session tokens issued by the identity provider)
AUTH_JWT_KEY = os.getenv("AUTH_JWT_KEY")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE")

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ID_BASIC = os.getenv("STRIPE_PRICE_ID_BASIC", "price_1S7dpfFlaHFpdvA4YJj1omFc")
STRIPE_PRICE_ID_STANDARD = os.getenv("STRIPE_PRICE_ID_STANDARD", "price_1S7drgFlaHFpdvA4EaEaCtrA")
STRIPE_PRICE_ID_PRO = os.getenv("STRIPE_PRICE_ID_PRO", "price_1S7dsBFlaHFpdvA42nBRrxgZ")

# "stripe" queries Stripe live, "database" reads the webhook-synced subscriptions table
BILLING_SOURCE = os.getenv("BILLING_SOURCE", "stripe" if STRIPE_SECRET_KEY else "database")

# ✅ Credits
FREE_TIER_CREDITS = int(os.getenv("FREE_TIER_CREDITS", "3"))

# ✅ Frontend
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Startup
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"
