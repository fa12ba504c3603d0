import os

import google.auth

# Firebase web API key, used for password sign-in against Identity Toolkit
FIREBASE_API_KEY = os.environ.get("FIREBASE_API_KEY", "")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CURRENCY = os.environ.get("CURRENCY", "USD")

# Placeholder business rule: share of price/amount booked as cost
SERVICE_COST_RATIO = float(os.environ.get("SERVICE_COST_RATIO", "0.3"))
BOOKING_COST_RATIO = float(os.environ.get("BOOKING_COST_RATIO", "0.4"))

REALTIME_ORDERS = os.environ.get("REALTIME_ORDERS", "true").lower() in ("1", "true", "yes")

DEFAULT_PRODUCT_IMAGE = os.environ.get(
    "DEFAULT_PRODUCT_IMAGE",
    "https://images.unsplash.com/photo-1512690196222-7c7d3f993c1b?q=80&w=2070&auto=format&fit=crop",
)


def resolve_project():
    # Prefer explicit env, then ADC project_id
    env_proj = os.getenv("GOOGLE_CLOUD_PROJECT") or os.getenv("PROJECT_ID")
    if env_proj:
        return env_proj
    creds, project_id = google.auth.default()
    return project_id
