import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./accent.db")

# Public site used for every link and redirect we hand out
SITE_URL = os.getenv("SITE_URL", "https://accent-productions.co.nz").rstrip("/")

# Business inbox (tagged with +dryhire / +fullevent for inquiry routing)
BUSINESS_EMAIL = os.getenv("BUSINESS_EMAIL", "hello@accent-productions.co.nz")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", BUSINESS_EMAIL)
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "Accent Productions")
# Shown to clients who choose to pay deposits/balances by bank transfer
BANK_ACCOUNT_NAME = os.getenv("BANK_ACCOUNT_NAME", "Accent Productions Ltd")
BANK_ACCOUNT_NUMBER = os.getenv("BANK_ACCOUNT_NUMBER", "")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv(
    "EMAIL_FROM_ADDRESS", "Accent Productions <notifications@accent-productions.co.nz>"
)

# Google Workspace (Calendar + Drive) via a long-lived refresh token
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")
CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "Pacific/Auckland")

# POLi Payments
POLI_MERCHANT_CODE = os.getenv("POLI_MERCHANT_CODE")
POLI_AUTH_CODE = os.getenv("POLI_AUTH_CODE")
POLI_API_URL = os.getenv(
    "POLI_API_URL", "https://poliapi.apac.paywithpoli.com/api/v2/Transaction/Initiate"
)
POLI_QUERY_URL = os.getenv(
    "POLI_QUERY_URL", "https://poliapi.apac.paywithpoli.com/api/v2/Transaction/GetTransaction"
)
POLI_CURRENCY = os.getenv("POLI_CURRENCY", "NZD")

# Admin authentication (Supabase access tokens)
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
ADMIN_EMAILS = [
    email.strip().lower() for email in os.getenv("ADMIN_EMAILS", "").split(",") if email.strip()
]

# Scheduled jobs
CRON_SECRET = os.getenv("CRON_SECRET")
# Hand inquiry processing to the arq worker instead of in-process background tasks
INQUIRY_WORKER_ENABLED = os.getenv("INQUIRY_WORKER_ENABLED", "false").lower() == "true"

# Business rules
GST_RATE = float(os.getenv("GST_RATE", "0.15"))
DELIVERY_FEE = float(os.getenv("DELIVERY_FEE", "150"))
CONTRACTOR_REMINDER_DAYS = int(os.getenv("CONTRACTOR_REMINDER_DAYS", "14"))
DEFAULT_RECURRENCE_REMINDER_DAYS = int(os.getenv("DEFAULT_RECURRENCE_REMINDER_DAYS", "30"))
UPCOMING_REMINDER_WINDOW_DAYS = int(os.getenv("UPCOMING_REMINDER_WINDOW_DAYS", "30"))
BULK_DELETE_LIMIT = int(os.getenv("BULK_DELETE_LIMIT", "100"))
BALANCE_DUE_DAYS = int(os.getenv("BALANCE_DUE_DAYS", "7"))

# Rate limiting for public forms
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
PUBLIC_FORM_RATE_LIMIT = int(os.getenv("PUBLIC_FORM_RATE_LIMIT", "10"))
PUBLIC_FORM_RATE_WINDOW = int(os.getenv("PUBLIC_FORM_RATE_WINDOW", "3600"))

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://accent-productions.co.nz,https://www.accent-productions.co.nz,http://localhost:3000",
).split(",")
