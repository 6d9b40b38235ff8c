import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import os

from dotenv import load_dotenv

from sync_ics.network.fetcher import fetch_feed, redact_url

load_dotenv()

FEED_ENV_VARS = {
    "airbnb": "AIRBNB_ICS_URL",
    "vrbo": "VRBO_ICS_URL",
    "booking": "BOOKING_COM_ICS_URL",
}

# === FIXTURE FETCH + SAVE ===


def save_fixture(text: str, filename: str) -> None:
    os.makedirs("tests/fixtures", exist_ok=True)
    path = f"tests/fixtures/{filename}"
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    print(f"Saved {filename} ({text.count('BEGIN:VEVENT')} events)")


def fetch_platform_fixture(platform: str, url: str | None = None) -> None:
    url = url or os.getenv(FEED_ENV_VARS[platform])
    if not url:
        raise RuntimeError(f"{FEED_ENV_VARS[platform]} not set in .env")
    print(f"Fetching {platform} feed from {redact_url(url)}")
    save_fixture(fetch_feed(url, platform=platform), f"{platform}_feed.ics")


# === CLI ===

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Download calendar feeds into tests/fixtures.")
    parser.add_argument(
        "--platform",
        choices=sorted(FEED_ENV_VARS),
        help="Only fetch this platform's feed (default: every configured feed)",
    )
    parser.add_argument("--url", help="Feed URL to use instead of the configured one")
    args = parser.parse_args()

    if args.platform:
        fetch_platform_fixture(args.platform, args.url)
    else:
        for name, env_var in FEED_ENV_VARS.items():
            if os.getenv(env_var):
                fetch_platform_fixture(name)
