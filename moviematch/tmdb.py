"""
TMDb metadata provider client.

Every request carries an explicit timeout and is retried with exponential
backoff on timeouts, dropped connections and retryable status codes. Any
failure that survives the retries is raised as ProviderLookupFailure.
"""

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

import requests

from .errors import ProviderLookupFailure
from .logger import get_logger
from .models import CanonicalRecord
from .retry import RetryError, TransientHTTPError, exponential_backoff, should_retry_http_status

logger = get_logger()

TMDB_BASE_URL = "https://api.themoviedb.org/3"


@dataclass(frozen=True)
class ProviderMovie:
    """The subset of a TMDb movie the importer needs."""
    tmdb_id: int
    title: str
    original_title: Optional[str] = None
    release_date: Optional[date] = None
    director: Optional[str] = None
    overview: Optional[str] = None

    def to_canonical(self) -> CanonicalRecord:
        return CanonicalRecord(
            id=None,
            title=self.title,
            director=self.director,
            release_date=self.release_date,
            tmdb_id=self.tmdb_id,
        )


def _expect_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProviderLookupFailure(f"TMDb returned an unexpected payload for {what}")
    return payload


def parse_release_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


class TMDbClient:
    """Interface to The Movie Database API."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        base_url: str = TMDB_BASE_URL,
    ):
        if not api_key:
            raise ValueError("TMDb API key is required (set TMDB_API_KEY)")
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._fetch = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                TransientHTTPError,
            ),
            on_retry=self._on_retry,
            sleep=sleep,
        )(self._fetch_once)

    @staticmethod
    def _on_retry(attempt: int, exc: Exception, delay: float):
        logger.warning("TMDb request failed, retrying", attempt=attempt, delay=delay, error=str(exc))

    def _fetch_once(self, url: str, params: Dict[str, Any]):
        logger.record_provider_call()
        resp = requests.get(url, params=params, timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise TransientHTTPError(resp.status_code, f"TMDb returned {resp.status_code} for {url}")
        return resp

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET an endpoint and return the decoded JSON body.

        Raises:
            ProviderLookupFailure: On any HTTP error, timeout, or request failure
        """
        url = f"{self.base_url}{endpoint}"
        query = {"api_key": self.api_key}
        query.update(params or {})
        try:
            resp = self._fetch(url, query)
            resp.raise_for_status()
            return resp.json()
        except RetryError as e:
            logger.error("TMDb request failed after retries", endpoint=endpoint, error=str(e))
            raise ProviderLookupFailure(f"TMDb request failed after retries: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.error("TMDb request failed", endpoint=endpoint, status=status)
            raise ProviderLookupFailure(f"TMDb request failed ({status}): {endpoint}") from e
        except requests.exceptions.RequestException as e:
            logger.error("TMDb request error", endpoint=endpoint, error=str(e))
            raise ProviderLookupFailure(f"TMDb request error: {e}") from e
        except ValueError as e:
            raise ProviderLookupFailure(f"TMDb returned invalid JSON for {endpoint}") from e

    def search_movies(self, query: str, year: Optional[int] = None, page: int = 1) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query, "page": page, "include_adult": "false"}
        if year:
            params["year"] = year
        return self._get("/search/movie", params)

    def get_movie_details(self, movie_id: int) -> Dict[str, Any]:
        return self._get(f"/movie/{movie_id}")

    def get_movie_credits(self, movie_id: int) -> Dict[str, Any]:
        return self._get(f"/movie/{movie_id}/credits")

    @staticmethod
    def find_director(credits: Dict[str, Any]) -> Optional[str]:
        crew = credits.get("crew") or []
        if not isinstance(crew, list):
            return None
        for member in crew:
            if isinstance(member, dict) and member.get("job") == "Director":
                return member.get("name") or None
        return None

    def lookup(self, title: str, year: Optional[int] = None) -> Optional[ProviderMovie]:
        """
        Search by title and expand the first hit with details and credits.

        Returns None when the search has no results.

        Raises:
            ProviderLookupFailure: If a response does not have the expected shape
        """
        search = _expect_dict(self.search_movies(title, year), "/search/movie")
        results = search.get("results") or []
        if not isinstance(results, list):
            raise ProviderLookupFailure("TMDb search returned a non-list 'results'")
        if not results:
            logger.debug("No TMDb results", title=title)
            return None

        first = _expect_dict(results[0], "/search/movie result")
        movie_id = first.get("id")
        if not isinstance(movie_id, int):
            raise ProviderLookupFailure(f"TMDb search result for {title!r} has no movie id")
        details = _expect_dict(self.get_movie_details(movie_id), f"/movie/{movie_id}")
        credits = _expect_dict(self.get_movie_credits(movie_id), f"/movie/{movie_id}/credits")

        return ProviderMovie(
            tmdb_id=movie_id,
            title=details.get("title") or first.get("title") or title,
            original_title=details.get("original_title"),
            release_date=parse_release_date(details.get("release_date")),
            director=self.find_director(credits),
            overview=details.get("overview"),
        )
