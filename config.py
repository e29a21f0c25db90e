import os
from dotenv import load_dotenv
from typing import List, Dict

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "outbound")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))  # server selection timeout

# Counter keys (day / month buckets roll over in this timezone)
COUNTER_TIMEZONE = os.getenv("COUNTER_TIMEZONE", "UTC")

# Pacing between consecutive sends of a sequence run (milliseconds)
SEND_DELAY_MIN_MS = int(os.getenv("SEND_DELAY_MIN_MS", "3000"))
SEND_DELAY_MAX_MS = int(os.getenv("SEND_DELAY_MAX_MS", "12000"))

# Usage warnings fire at this percentage of a monthly cap
USAGE_WARNING_PERCENT = int(os.getenv("USAGE_WARNING_PERCENT", "80"))

# Transport: "smtp" (direct via aiosmtplib) or "function" (hosted send-email endpoint)
TRANSPORT = os.getenv("TRANSPORT", "smtp").lower()

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "60"))


# SMTP credentials - one password per sending address
def parse_smtp_accounts() -> Dict[str, Dict[str, str]]:
    """Parse SMTP credentials from environment, keyed by from-address"""
    emails = os.getenv("SMTP_EMAILS", "").split(",")
    passwords = os.getenv("SMTP_PASSWORDS", "").split(",")

    accounts = {}
    for i, email in enumerate(emails):
        email = email.strip().lower()
        if email:
            accounts[email] = {
                "email": email,
                "password": passwords[i].strip() if i < len(passwords) else passwords[0].strip(),
            }
    return accounts

SMTP_ACCOUNTS = parse_smtp_accounts()

SEND_FUNCTION_URL = os.getenv("SEND_FUNCTION_URL", "")
SEND_FUNCTION_TOKEN = os.getenv("SEND_FUNCTION_TOKEN", "")
SEND_FUNCTION_TIMEOUT = int(os.getenv("SEND_FUNCTION_TIMEOUT", "30"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()  # "text" or "json" (ELK)
LOG_FILE = os.getenv("LOG_FILE") or None

# Alerts (Slack / Discord / Telegram webhook)
ALERT_WEBHOOK_URL = os.getenv("ALERT_WEBHOOK_URL", "")
ALERT_CHANNEL = os.getenv("ALERT_CHANNEL", "slack").lower()
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID", "")

# Plan names the billing catalog has used over time
LEGACY_PLAN_ALIASES: Dict[str, str] = {
    "free": "Starter",
    "trial": "Starter",
    "basic": "Starter",
    "professional": "Growth",
    "pro": "Growth",
    "business": "Scale",
    "enterprise": "Scale",
}

KNOWN_PLANS: List[str] = ["Starter", "Growth", "Scale"]
