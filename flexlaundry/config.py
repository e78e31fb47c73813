import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Public site URL used in links sent to members
BASE_URL = os.getenv("BASE_URL", "https://flexlaundry.co.uk").rstrip("/")

# Airtable Configuration
AIRTABLE_API_KEY = os.getenv("AIRTABLE_API_KEY")
AIRTABLE_BASE_ID = os.getenv("AIRTABLE_BASE_ID", "appkU13tG14ZLVZZ9")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ONEOFF = os.getenv("STRIPE_PRICE_ONEOFF")
STRIPE_PRICE_ESSENTIAL = os.getenv("STRIPE_PRICE_ESSENTIAL")
STRIPE_PRICE_UNLIMITED = os.getenv("STRIPE_PRICE_UNLIMITED")

# Twilio WhatsApp Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER", "whatsapp:+447366907286")

# Approved WhatsApp content templates (optional, plain text is sent when unset)
WHATSAPP_TEMPLATES = {
    "welcome": os.getenv("TEMPLATE_WELCOME_SID"),
    "drop_confirmed": os.getenv("TEMPLATE_DROP_CONFIRMED_SID"),
    "ready_pickup": os.getenv("TEMPLATE_READY_PICKUP_SID"),
    "pickup_reminder": os.getenv("TEMPLATE_PICKUP_REMINDER_SID"),
    "reengagement": os.getenv("TEMPLATE_REENGAGEMENT_SID"),
    "login_link": os.getenv("TEMPLATE_LOGIN_LINK_SID"),
}

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "FLEX <hello@flexlaundry.co.uk>")
SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@flexlaundry.co.uk")
OPS_ALERT_EMAIL = os.getenv("OPS_ALERT_EMAIL", "ops@flexlaundry.co.uk")

# Security - CRITICAL: No default signing key in production
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    import warnings

    warnings.warn(
        "JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Ops dashboard shared secret and cookie value
OPS_PASSWORD = os.getenv("OPS_PASSWORD")
OPS_AUTH_TOKEN = os.getenv("OPS_AUTH_TOKEN")

# Bearer secret for cron endpoints and the Airtable automation webhook
CRON_SECRET = os.getenv("CRON_SECRET")

# Phone numbers without an international prefix are assumed to be UK
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "44")

# CORS origins for the frontend (comma separated)
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "https://flexlaundry.co.uk,https://www.flexlaundry.co.uk,http://localhost:3000",
).split(",")

COOKIE_SECURE = ENVIRONMENT == "production"

# Security headers are on by default, disable only for local debugging
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
