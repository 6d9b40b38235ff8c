import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "rental"

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Feed fetching
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
MAX_FEED_BYTES = int(os.getenv("MAX_FEED_BYTES", str(5 * 1024 * 1024)))
FETCH_RETRIES = int(os.getenv("FETCH_RETRIES", "1"))

# Orchestration
SYNC_DEADLINE_SECONDS = float(os.getenv("SYNC_DEADLINE_SECONDS", "30"))
MAX_CONCURRENT_SOURCES = int(os.getenv("MAX_CONCURRENT_SOURCES", "4"))

# "ignore" or "report"; bookings missing from a feed are never deleted
VANISHED_BOOKING_POLICY = os.getenv("VANISHED_BOOKING_POLICY", "ignore").lower()
if VANISHED_BOOKING_POLICY not in ("ignore", "report"):
    raise ValueError("VANISHED_BOOKING_POLICY must be 'ignore' or 'report'")

# Zone used for all-day and floating events when the feed does not name one
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE") or None

# Default feeds used when a sync request carries no sources
AIRBNB_ICS_URL = os.getenv("AIRBNB_ICS_URL")
VRBO_ICS_URL = os.getenv("VRBO_ICS_URL")
BOOKING_COM_ICS_URL = os.getenv("BOOKING_COM_ICS_URL")


@dataclass(frozen=True)
class DefaultSource:
    """A feed configured through the environment rather than the request."""

    name: str
    platform: str
    url: str | None


@dataclass(frozen=True)
class SyncSettings:
    """
    Process-wide sync configuration, injected into the orchestrator.

    Built once from the module constants via from_env(). Tests construct it
    directly to control timeouts, concurrency and default feeds.
    """

    fetch_timeout: float = 10.0
    max_feed_bytes: int = 5 * 1024 * 1024
    fetch_retries: int = 1
    deadline: float = 30.0
    max_concurrent_sources: int = 4
    vanished_booking_policy: str = "ignore"
    default_timezone: str | None = None
    dry_run: bool = False
    default_sources: tuple[DefaultSource, ...] = field(default_factory=tuple)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        return cls(
            fetch_timeout=FETCH_TIMEOUT_SECONDS,
            max_feed_bytes=MAX_FEED_BYTES,
            fetch_retries=FETCH_RETRIES,
            deadline=SYNC_DEADLINE_SECONDS,
            max_concurrent_sources=MAX_CONCURRENT_SOURCES,
            vanished_booking_policy=VANISHED_BOOKING_POLICY,
            default_timezone=DEFAULT_TIMEZONE,
            dry_run=DRY_RUN,
            default_sources=(
                DefaultSource("Airbnb", "airbnb", AIRBNB_ICS_URL),
                DefaultSource("VRBO", "vrbo", VRBO_ICS_URL),
                DefaultSource("Booking.com", "booking", BOOKING_COM_ICS_URL),
            ),
        )

    def configured_sources(self) -> list[DefaultSource]:
        """Default sources that actually have a feed URL."""
        return [source for source in self.default_sources if source.url]
