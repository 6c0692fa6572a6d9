"""
BacklinkEngine: the operations exposed to the rest of the system.

Discovery path:
    SourceAggregator -> deduplicate -> OpportunityScorer
    -> AchievabilityFilter -> OpportunityStore

Monitoring path:
    SnapshotSource -> SnapshotDiffer -> MetricsAggregator

The engine works on a caller-owned SQLAlchemy session. Apart from
monitoring runs, which commit their own check rows, committing is left to
the caller (normally ``get_db_session``).
"""

from typing import Any, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from .config import Settings, get_settings, MAX_PERSISTED_OPPORTUNITIES
from .exceptions import ValidationError
from .models.opportunity import Opportunity, OpportunityType
from .models.website import Website
from .providers.base import AuthorityProvider, ObservedLink, SearchProvider, SnapshotSource
from .providers.serper import SerperSearchProvider
from .providers.seranking import SERankingProvider
from .services.achievability import AchievabilityFilter, Band
from .services.acquired import AcquiredBacklinkService
from .services.aggregator import SourceAggregator
from .services.authority import AuthorityEstimator
from .services.health import BacklinkVerifier, HealthScorer
from .services.metrics import MetricsAggregator
from .services.opportunity_store import OpportunityStore, _parse_enum
from .services.scorer import OpportunityScorer
from .services.snapshot_differ import CheckResult, SnapshotDiffer
from .utils.deduplicator import deduplicate
from .utils.helpers import extract_domain
from .utils.rate_limiter import get_rate_limiter


class BacklinkEngine:
    """Backlink discovery, opportunity lifecycle and backlink monitoring."""

    def __init__(
        self,
        session: Session,
        settings: Optional[Settings] = None,
        search_provider: Optional[SearchProvider] = None,
        authority_provider: Optional[AuthorityProvider] = None,
        snapshot_source: Optional[SnapshotSource] = None,
        verifier: Optional[BacklinkVerifier] = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.search_provider = search_provider
        self.authority_provider = authority_provider
        self.snapshot_source = snapshot_source

        self.estimator = AuthorityEstimator(authority_provider)
        self.aggregator = SourceAggregator(search_provider, authority_provider, self.estimator)
        self.scorer = OpportunityScorer()
        self.store = OpportunityStore(session)
        self.metrics = MetricsAggregator(session)
        self.acquired = AcquiredBacklinkService(session, verifier=verifier, settings=self.settings)

    @classmethod
    def from_settings(cls, session: Session, settings: Optional[Settings] = None) -> "BacklinkEngine":
        """Build an engine with the providers the settings have keys for."""
        settings = settings or get_settings()
        limiter = get_rate_limiter()

        search = None
        if settings.serper_api_key:
            search = SerperSearchProvider(settings, rate_limiter=limiter)
        else:
            logger.warning("SERPER_API_KEY not set; discovery will use heuristic sources")

        se_ranking = None
        if settings.se_ranking_project_api_key or settings.se_ranking_api_key:
            se_ranking = SERankingProvider(settings, rate_limiter=limiter)
        else:
            logger.warning("SE Ranking key not set; authority will be estimated heuristically")

        return cls(
            session,
            settings=settings,
            search_provider=search,
            authority_provider=se_ranking,
            snapshot_source=se_ranking,
        )

    # ------------------------------------------------------------------
    # Websites
    # ------------------------------------------------------------------

    def add_website(self, domain: str, name: Optional[str] = None, keywords: Optional[Sequence[str]] = None) -> Website:
        normalized = extract_domain(domain)
        if not normalized or "." not in normalized:
            raise ValidationError(f"Invalid domain '{domain}'")
        existing = self.session.query(Website).filter(Website.domain == normalized).one_or_none()
        if existing is not None:
            raise ValidationError(f"Website {normalized} already exists (id={existing.id})")

        website = Website(
            domain=normalized,
            name=name or normalized,
            target_keywords=", ".join(k.strip() for k in (keywords or []) if k.strip()) or None,
        )
        self.session.add(website)
        self.session.flush()
        logger.info("Added website {} (id={})", normalized, website.id)
        return website

    def list_websites(self) -> List[Website]:
        return self.session.query(Website).order_by(Website.id).all()

    def update_website_settings(
        self,
        website_id: int,
        preset: Optional[str] = None,
        min_authority: Optional[int] = None,
        max_authority: Optional[int] = None,
        min_difficulty: Optional[int] = None,
        max_difficulty: Optional[int] = None,
        exclude_edu_gov: Optional[bool] = None,
        exclude_news_sites: Optional[bool] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> Website:
        """Save an achievability band (from a preset or explicit values) and flags."""
        website = self.store.get_website(website_id)

        base = Band.preset(preset) if preset else Band.from_website(website)
        band = Band(
            min_authority=base.min_authority if min_authority is None else min_authority,
            max_authority=base.max_authority if max_authority is None else max_authority,
            min_difficulty=base.min_difficulty if min_difficulty is None else min_difficulty,
            max_difficulty=base.max_difficulty if max_difficulty is None else max_difficulty,
        )

        website.min_authority = band.min_authority
        website.max_authority = band.max_authority
        website.min_difficulty = band.min_difficulty
        website.max_difficulty = band.max_difficulty
        if exclude_edu_gov is not None:
            website.exclude_edu_gov = exclude_edu_gov
        if exclude_news_sites is not None:
            website.exclude_news_sites = exclude_news_sites
        if keywords is not None:
            website.target_keywords = ", ".join(k.strip() for k in keywords if k.strip()) or None

        self.session.flush()
        logger.info("Updated achievability settings for {}: {}", website.domain, band.to_dict())
        return website

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_band(
        website: Website,
        authority_band: Optional[Tuple[int, int]],
        difficulty_band: Optional[Tuple[int, int]],
    ) -> Band:
        """Per-call band; missing ends fall back to the website's saved band."""
        saved = Band.from_website(website)
        min_a, max_a = authority_band or (None, None)
        min_d, max_d = difficulty_band or (None, None)
        return Band(
            min_authority=saved.min_authority if min_a is None else min_a,
            max_authority=saved.max_authority if max_a is None else max_a,
            min_difficulty=saved.min_difficulty if min_d is None else min_d,
            max_difficulty=saved.max_difficulty if max_d is None else max_d,
        )

    def discover_opportunities(
        self,
        website_id: int,
        keywords: Optional[Sequence[str]] = None,
        opportunity_type=None,
        authority_band: Optional[Tuple[int, int]] = None,
        difficulty_band: Optional[Tuple[int, int]] = None,
    ) -> List[Opportunity]:
        """Find, score, filter and persist opportunities for a website.

        Returns at most 15 persisted opportunities, easiest and strongest
        first. Input is validated before any provider call or write.
        """
        website = self.store.get_website(website_id)
        wanted_type = _parse_enum(OpportunityType, opportunity_type, "opportunity type")
        band = self._resolve_band(website, authority_band, difficulty_band)

        keywords = [k.strip() for k in (keywords or website.keywords_list) if k and k.strip()]
        if not keywords:
            raise ValidationError("At least one keyword is required")

        logger.info("Discovering opportunities for {} with {} keywords", website.domain, len(keywords))

        raw = self.aggregator.gather(website.domain, keywords)
        unique = deduplicate(raw, excluded=[website.domain])
        scored = self.scorer.score_all(unique)

        if wanted_type is not None:
            scored = [c for c in scored if c.opportunity_type == wanted_type]

        achievable = AchievabilityFilter(
            band,
            exclude_edu_gov=bool(website.exclude_edu_gov),
            exclude_news_sites=bool(website.exclude_news_sites),
        ).apply(scored)
        selected = achievable[:MAX_PERSISTED_OPPORTUNITIES]

        rows = self.store.upsert(website.id, selected)
        logger.info("Discovered {} opportunities for {}", len(rows), website.domain)
        return rows

    def list_opportunities(self, website_id: int, **filters) -> List[Opportunity]:
        return self.store.list_opportunities(website_id, **filters)

    def update_opportunity_status(self, opportunity_id: int, status, notes: Optional[str] = None) -> Opportunity:
        return self.store.transition(opportunity_id, status, notes)

    def get_campaign_stats(self, website_id: int) -> dict:
        return self.store.campaign_stats(website_id)

    def create_campaign(self, website_id: int, name: str, target_type=None, target_count: int = 10):
        return self.store.create_campaign(website_id, name, target_type, target_count)

    def list_campaigns(self, website_id: int):
        return self.store.list_campaigns(website_id)

    def assign_to_campaign(self, opportunity_id: int, campaign_id: int) -> Opportunity:
        return self.store.assign_to_campaign(opportunity_id, campaign_id)

    def record_outreach(self, opportunity_id: int, subject: str, body: str, **kwargs):
        return self.store.record_outreach(opportunity_id, subject, body, **kwargs)

    def update_outreach_response(self, message_id: int, status=None, response_text: Optional[str] = None):
        return self.store.update_outreach_response(message_id, status, response_text)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def run_backlink_check(self, website_id: int, snapshot: Optional[List[ObservedLink]] = None) -> CheckResult:
        differ = SnapshotDiffer(
            self.session,
            snapshot_source=self.snapshot_source,
            stale_after_minutes=self.settings.check_stale_after_minutes,
        )
        return differ.run(website_id, snapshot=snapshot)

    def get_metrics(self, website_id: int) -> dict[str, Any]:
        return self.metrics.summary(website_id)

    def get_history(self, website_id: int, days: int = 30) -> List[dict]:
        return self.metrics.history(website_id, days)

    def list_backlinks(self, website_id: int, status=None):
        return self.metrics.list_backlinks(website_id, status)

    # ------------------------------------------------------------------
    # Acquired backlinks and health
    # ------------------------------------------------------------------

    def add_acquired_backlink(self, website_id: int, backlink_url: str, **kwargs):
        return self.acquired.add(website_id, backlink_url, **kwargs)

    def verify_acquired_backlink(self, acquired_id: int):
        return self.acquired.verify(acquired_id)

    def verify_all_acquired(self, website_id: int) -> List[dict]:
        return self.acquired.verify_all(website_id)

    def get_health(self, website_id: int) -> dict:
        return HealthScorer().summary(self.acquired.list_acquired(website_id))

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close HTTP clients held by providers and the verifier."""
        for client in {id(c): c for c in (self.search_provider, self.authority_provider, self.snapshot_source) if c}.values():
            close = getattr(client, "close", None)
            if close is not None:
                close()
        self.acquired.verifier.close()

    def __enter__(self) -> "BacklinkEngine":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
