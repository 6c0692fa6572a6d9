"""Tests for the Serper and SE Ranking provider clients."""

from unittest.mock import MagicMock

import pytest
import requests
from tenacity import wait_none

from backlink_engine.config import Settings
from backlink_engine.exceptions import ProviderUnavailable
from backlink_engine.providers.serper import SERPER_API_URL, SerperSearchProvider
from backlink_engine.providers.seranking import (
    SE_RANKING_DATA_API_BASE, SE_RANKING_PROJECT_API_BASE, SERankingProvider,
)


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error", response=response)
    return response


def _http(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return session


class TestSerperSearchProvider:
    """Test suite for SerperSearchProvider."""

    ORGANIC = {"organic": [
        {"link": "https://rank1.com/a", "title": "One", "position": 1},
        {"title": "No link"},
        {"link": "https://rank2.com/b", "title": "Two"},
    ]}

    def test_search_parses_organic_results(self, settings):
        """Test organic links are returned in order and the key is sent."""
        http = _http(_response(self.ORGANIC))
        provider = SerperSearchProvider(settings, wait=wait_none(), session=http)

        results = provider.search("mobile notary")

        assert [r.url for r in results] == ["https://rank1.com/a", "https://rank2.com/b"]
        assert results[1].position == 3
        method, url = http.request.call_args.args
        kwargs = http.request.call_args.kwargs
        assert (method, url) == ("POST", SERPER_API_URL)
        assert kwargs["json"] == {"q": "mobile notary", "num": 10}
        assert kwargs["headers"]["X-API-KEY"] == "serper-test-key"
        assert kwargs["timeout"] == settings.request_timeout_seconds

    def test_malformed_organic_entries_are_skipped(self, settings):
        """Test non-dict organic entries are ignored instead of aborting."""
        payload = {"organic": ["https://junk.com", None, {"link": "https://rank1.com/a"}]}
        provider = SerperSearchProvider(settings, wait=wait_none(), session=_http(_response(payload)))

        results = provider.search("kw")

        assert [r.url for r in results] == ["https://rank1.com/a"]
        assert results[0].position == 3

    def test_missing_key(self):
        """Test an unconfigured provider is unavailable without any request."""
        http = MagicMock()
        provider = SerperSearchProvider(Settings(_env_file=None, SERPER_API_KEY=None), session=http)
        with pytest.raises(ProviderUnavailable):
            provider.search("kw")
        http.request.assert_not_called()

    def test_transient_error_is_retried(self, settings):
        """Test a dropped connection is retried."""
        http = _http(requests.ConnectionError("reset"), _response(self.ORGANIC))
        provider = SerperSearchProvider(settings, wait=wait_none(), session=http)

        assert len(provider.search("kw")) == 2
        assert http.request.call_count == 2

    def test_retries_exhausted(self, settings):
        """Test repeated 5xx ends in ProviderUnavailable after the configured attempts."""
        http = _http(_response(status_code=503), _response(status_code=503))
        provider = SerperSearchProvider(settings, wait=wait_none(), session=http)

        with pytest.raises(ProviderUnavailable):
            provider.search("kw")
        assert http.request.call_count == settings.provider_retry_attempts

    def test_client_error_not_retried(self, settings):
        """Test a 401 fails immediately."""
        http = _http(_response(status_code=401), _response(self.ORGANIC))
        provider = SerperSearchProvider(settings, wait=wait_none(), session=http)

        with pytest.raises(ProviderUnavailable):
            provider.search("kw")
        assert http.request.call_count == 1

    def test_invalid_json(self, settings):
        """Test a non-JSON body is treated as unavailable."""
        response = _response()
        response.json.side_effect = ValueError("not json")
        provider = SerperSearchProvider(settings, wait=wait_none(), session=_http(response))
        with pytest.raises(ProviderUnavailable):
            provider.search("kw")

    def test_rate_limiter_is_used(self, settings):
        """Test every request goes through the rate limiter."""
        limiter = MagicMock()
        provider = SerperSearchProvider(settings, rate_limiter=limiter, wait=wait_none(), session=_http(_response(self.ORGANIC)))
        provider.search("kw")
        limiter.acquire.assert_called_once_with(SERPER_API_URL)


class TestSERankingProvider:
    """Test suite for SERankingProvider."""

    BACKLINKS = {"backlinks": [
        {"url_from": "https://ref-a.com/1", "url_to": "https://example.com/", "anchor": "notary", "domain_rank": 40},
        {"url_from": "https://ref-a.com/2", "url_to": "https://example.com/x", "anchor": "apostille",
         "domain_rank": 44, "nofollow": True},
        {"source_url": "https://www.ref-b.org/p", "target_url": "https://example.com/", "anchor_text": "here",
         "link_type": "nofollow"},
        {"anchor": "no source"},
        "garbage",
    ]}

    def test_api_base_selection(self, settings):
        """Test a project key selects the project API."""
        assert SERankingProvider(settings, session=MagicMock()).api_base == SE_RANKING_DATA_API_BASE
        project = Settings(_env_file=None, SE_RANKING_PROJECT_API_KEY="project-key")
        provider = SERankingProvider(project, session=MagicMock())
        assert provider.api_base == SE_RANKING_PROJECT_API_BASE
        assert provider.api_key == "project-key"

    def test_authority_of(self, settings):
        """Test authority and spam are read from the overview."""
        http = _http(_response({"domain_authority": 57.6, "toxic_score": "3"}))
        estimate = SERankingProvider(settings, wait=wait_none(), session=http).authority_of("blog.com")

        assert estimate.authority == 58
        assert estimate.spam == 3
        assert http.request.call_args.kwargs["headers"]["Authorization"] == "Token se-test-key"
        assert http.request.call_args.kwargs["params"] == {"domain": "blog.com"}

    def test_referring_domains_grouped(self, settings):
        """Test links are grouped per domain, most links first, max authority kept."""
        http = _http(_response(self.BACKLINKS))
        domains = SERankingProvider(settings, wait=wait_none(), session=http).referring_domains_of("example.com")

        assert [(d.domain, d.authority, d.link_count) for d in domains] == [
            ("ref-a.com", 44, 2),
            ("ref-b.org", None, 1),
        ]

    def test_snapshot_mapping(self, settings):
        """Test snapshot rows map field variants and follow flags."""
        http = _http(_response(self.BACKLINKS))
        links = SERankingProvider(settings, wait=wait_none(), session=http).snapshot_for("example.com")

        assert [l.referring_url for l in links] == [
            "https://ref-a.com/1", "https://ref-a.com/2", "https://www.ref-b.org/p",
        ]
        assert [l.is_dofollow for l in links] == [True, False, False]
        assert links[0].anchor_text == "notary"
        assert links[0].authority == 40
        assert links[2].target_url == "https://example.com/"
        assert http.request.call_args.kwargs["params"] == {"target": "example.com", "limit": settings.snapshot_limit}

    def test_missing_key(self):
        """Test no key means unavailable."""
        provider = SERankingProvider(Settings(_env_file=None, SE_RANKING_API_KEY=None), session=MagicMock())
        with pytest.raises(ProviderUnavailable):
            provider.snapshot_for("example.com")

    def test_unexpected_shape(self, settings):
        """Test a non-object body is rejected."""
        http = _http(_response(["not", "a", "dict"]))
        with pytest.raises(ProviderUnavailable):
            SERankingProvider(settings, wait=wait_none(), session=http).authority_of("blog.com")
