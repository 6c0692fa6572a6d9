"""Configuration management using environment variables."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = Field(
        default="sqlite:///data/backlinks.db",
        alias="DATABASE_URL"
    )

    # Provider credentials
    serper_api_key: Optional[str] = Field(
        default=None,
        alias="SERPER_API_KEY"
    )
    se_ranking_api_key: Optional[str] = Field(
        default=None,
        alias="SE_RANKING_API_KEY"
    )
    se_ranking_project_api_key: Optional[str] = Field(
        default=None,
        alias="SE_RANKING_PROJECT_API_KEY"
    )

    # Request behaviour
    request_timeout_seconds: float = Field(
        default=10.0,
        alias="REQUEST_TIMEOUT_SECONDS"
    )
    request_delay_seconds: float = Field(
        default=1.0,
        alias="REQUEST_DELAY_SECONDS"
    )
    max_requests_per_minute: int = Field(
        default=30,
        alias="MAX_REQUESTS_PER_MINUTE"
    )
    provider_retry_attempts: int = Field(
        default=3,
        alias="PROVIDER_RETRY_ATTEMPTS"
    )
    verify_delay_seconds: float = Field(
        default=0.5,
        alias="VERIFY_DELAY_SECONDS"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        alias="USER_AGENT"
    )

    # Monitoring
    snapshot_limit: int = Field(
        default=100,
        alias="SNAPSHOT_LIMIT"
    )
    check_stale_after_minutes: int = Field(
        default=30,
        alias="CHECK_STALE_AFTER_MINUTES"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_file: str = Field(
        default="logs/backlink_engine.log",
        alias="LOG_FILE"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DATA_DIR.mkdir(exist_ok=True)


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


# Discovery fan-out: ranking sites inspected per keyword
TOP_RANKING_SITES = 5

# Maximum opportunities handed to persistence per discovery run
MAX_PERSISTED_OPPORTUNITIES = 15

# Maximum size of the band-less fallback set
FALLBACK_LIMIT = 10

# Hard spam ceiling for the achievability filter
SPAM_CUTOFF = 30


# Achievability band presets: (min, max) for authority and difficulty
BAND_PRESETS = {
    "startup": {"authority": (10, 40), "difficulty": (10, 50)},
    "growing": {"authority": (30, 60), "difficulty": (25, 65)},
    "established": {"authority": (50, 80), "difficulty": (40, 80)},
    "aggressive": {"authority": (20, 90), "difficulty": (20, 90)},
    "default": {"authority": (10, 60), "difficulty": (20, 70)},
}


# Well-known domains with a fixed authority estimate
KNOWN_DOMAIN_AUTHORITY = {
    "wikipedia.org": 99, "facebook.com": 99, "twitter.com": 98,
    "google.com": 100, "github.com": 95, "linkedin.com": 92,
    "stackoverflow.com": 93, "yelp.com": 93, "reddit.com": 91,
    "techcrunch.com": 91, "medium.com": 90, "forbes.com": 89,
    "quora.com": 88, "producthunt.com": 88, "bbb.org": 88,
    "entrepreneur.com": 85, "inc.com": 84, "yellowpages.com": 82,
    "findlaw.com": 82, "justia.com": 80, "angi.com": 80,
    "mapquest.com": 78, "nolo.com": 75, "thumbtack.com": 72,
    "avvo.com": 72, "lawyers.com": 70, "hg.org": 68,
    "manta.com": 62, "alignable.com": 55,
}

# Domains used when no provider can be reached at all
HEURISTIC_FALLBACK_DOMAINS = [
    "medium.com", "linkedin.com", "github.com", "stackoverflow.com",
    "quora.com", "reddit.com", "entrepreneur.com", "forbes.com",
]

NEWS_DOMAINS = {
    "nytimes.com", "washingtonpost.com", "bbc.com", "bbc.co.uk", "cnn.com",
    "reuters.com", "theguardian.com", "forbes.com", "bloomberg.com",
    "techcrunch.com", "wsj.com", "usatoday.com", "apnews.com", "npr.org",
    "businessinsider.com", "huffpost.com", "inc.com", "entrepreneur.com",
}

SUSPICIOUS_TLDS = {
    ".xyz", ".top", ".pw", ".cc", ".tk", ".ga",
    ".cf", ".gq", ".ml", ".buzz", ".click",
}

# Heuristic patterns commonly found in spammy / link-farm domains
SPAM_DOMAIN_PATTERNS = [
    r"free[-_]?link", r"link[-_]?farm", r"link[-_]?exchange",
    r"seo[-_]?link", r"buy[-_]?link", r"cheap[-_]?link",
    r"article[-_]?spin", r"spam", r"casino", r"poker",
    r"pharma", r"viagra", r"cialis", r"payday[-_]?loan",
    r"porn", r"xxx", r"adult", r"gambling", r"slot[-_]?machine",
    r"diet[-_]?pill", r"crypto[-_]?scam",
]

# URL fragments that reveal an opportunity type, checked in order
OPPORTUNITY_TYPE_KEYWORDS = [
    ("guest_post", ["guest", "contribute", "author", "write"]),
    ("directory", ["directory", "listing"]),
    ("broken_link", ["broken", "404"]),
    ("resource_page", ["resource", "guide", "tools", "hub", "library"]),
    ("forum", ["forum", "discussion"]),
]

# Relevance assigned by where a candidate came from
RELEVANCE_RANKING_SITE = 85
RELEVANCE_HEURISTIC = 80
RELEVANCE_REFERRING_DOMAIN = 70
RELEVANCE_KEYWORD_BONUS = 10
