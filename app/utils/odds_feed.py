"""
Odds feed client

Fetches market-implied win probabilities per category from a JSON HTTP
endpoint (ODDS_FEED_URL). Expected payload for GET <url>/categories/<id>:

    {"category": "best-picture",
     "nominees": [{"nominee_id": "oppenheimer", "probability": 72.5,
                   "resolved": false}, ...]}

Probabilities may be given as fractions (0-1) or percentages (0-100).
"""

import logging
import time
from functools import wraps

import requests
from flask import current_app

logger = logging.getLogger(__name__)


class OddsFeedError(Exception):
    pass


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    response = func(self, *args, **kwargs)

                    if response.status_code == 429:  # Too Many Requests
                        retry_after = float(
                            response.headers.get(
                                "Retry-After", base_delay * (backoff_factor**attempt)
                            )
                        )
                        logger.warning(
                            f"Rate limited. Waiting {retry_after}s before retry {attempt + 1}/{max_retries}"
                        )
                        time.sleep(retry_after)
                        continue
                    elif response.status_code >= 500:  # Server errors
                        delay = base_delay * (backoff_factor**attempt)
                        logger.warning(
                            f"Server error {response.status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                        )
                        time.sleep(delay)
                        continue

                    return response

                except requests.exceptions.RequestException as e:
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if attempt < max_retries - 1:
                        time.sleep(delay)
                    else:
                        raise OddsFeedError(str(e)) from e

            raise OddsFeedError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


def normalize_probabilities(entries):
    """
    Map nominee_id -> percentage in [0, 100].

    When every probability is at most 1 the payload is read as fractions.
    Entries without a usable number are dropped.
    """
    values = {}
    for entry in entries:
        nominee_id = entry.get("nominee_id")
        probability = entry.get("probability")
        if not nominee_id or isinstance(probability, bool):
            continue
        try:
            values[nominee_id] = float(probability)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring unusable probability for {nominee_id}: {probability!r}")

    if values and max(values.values()) <= 1.0:
        values = {nominee_id: value * 100 for nominee_id, value in values.items()}

    return {
        nominee_id: min(100.0, max(0.0, value)) for nominee_id, value in values.items()
    }


class OddsFeed:
    """Client for the external odds source"""

    def __init__(self, base_url=None, timeout=None):
        self.base_url = (base_url or current_app.config.get("ODDS_FEED_URL") or "").rstrip("/")
        self.timeout = timeout or current_app.config.get("ODDS_FEED_TIMEOUT", 10)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Oscars-Pool/1.0"})
        self.request_count = 0

    @property
    def is_configured(self):
        return bool(self.base_url)

    @rate_limit_decorator(max_retries=3, base_delay=1.0)
    def _make_api_request(self, url, params=None):
        """GET with retry; 404 is returned to the caller as "no market" """
        self.request_count += 1
        response = self.session.get(url, params=params, timeout=self.timeout)
        if response.status_code in (404, 429) or response.status_code >= 500:
            return response
        response.raise_for_status()
        return response

    def _fetch_category(self, base_category_id):
        if not self.is_configured:
            raise OddsFeedError("ODDS_FEED_URL is not configured")

        response = self._make_api_request(f"{self.base_url}/categories/{base_category_id}")
        if response.status_code == 404:
            return None

        try:
            payload = response.json()
        except ValueError as e:
            raise OddsFeedError(f"Invalid JSON for {base_category_id}: {e}") from e
        return payload.get("nominees") or []

    def fetch_category_odds(self, base_category_id):
        """{nominee_id: percentage} for a category, or None if no market exists"""
        entries = self._fetch_category(base_category_id)
        if entries is None:
            return None
        odds = normalize_probabilities(entries)
        logger.debug(f"Fetched odds for {len(odds)} nominees in {base_category_id}")
        return odds

    def fetch_resolved_winner(self, base_category_id):
        """Nominee id of the market resolved as the winner, if any"""
        entries = self._fetch_category(base_category_id)
        for entry in entries or []:
            if entry.get("resolved") is True and entry.get("nominee_id"):
                return entry["nominee_id"]
        return None
