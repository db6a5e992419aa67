"""Clients for the two external data sources.

Both fetches share one contract: a missing URL is a ConfigurationError and
everything that goes wrong on the wire or in the payload is an
ExternalServiceError tagged with the source name.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from country_sync.config import Settings
from country_sync.errors import ConfigurationError, ExternalServiceError
from country_sync.schemas import ExchangeRateSnapshot

COUNTRIES_SOURCE = "Countries API"
RATES_SOURCE = "Exchange Rate API"


class SourceClient:
    def __init__(
        self,
        countries_url: Optional[str],
        rates_url: Optional[str],
        timeout: float = 5.0,
        max_redirects: int = 3,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.countries_url = (countries_url or "").strip() or None
        self.rates_url = (rates_url or "").strip() or None
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.max_redirects = max_redirects
        self.logger = logger or logging.getLogger("country_sync.sources")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SourceClient":
        return cls(
            settings.COUNTRY_API,
            settings.EXCHANGE_API,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            max_redirects=settings.HTTP_MAX_REDIRECTS,
            **kwargs,
        )

    def close(self) -> None:
        self.session.close()

    def _get_json(self, source: str, url: Optional[str], setting: str) -> Any:
        if not url:
            self.logger.error("%s is not configured (%s is missing)", source, setting, extra={"source": source})
            raise ConfigurationError(f"{setting} is missing; cannot fetch from {source}")

        self.logger.info("Fetching %s from %s", source, url, extra={"source": source})
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.TooManyRedirects as exc:
            cause = f"too many redirects (limit {self.session.max_redirects})"
            self.logger.error("Failed to fetch %s: %s", source, cause, extra={"source": source})
            raise ExternalServiceError(source, cause) from exc
        except requests.Timeout as exc:
            cause = f"timed out after {self.timeout}s"
            self.logger.error("Failed to fetch %s: %s", source, cause, extra={"source": source})
            raise ExternalServiceError(source, cause) from exc
        except requests.HTTPError as exc:
            cause = f"returned HTTP {exc.response.status_code if exc.response is not None else 'error'}"
            self.logger.error("Failed to fetch %s: %s", source, cause, extra={"source": source})
            raise ExternalServiceError(source, cause) from exc
        except requests.RequestException as exc:
            # JSON decode errors from requests also land here.
            cause = str(exc) or exc.__class__.__name__
            self.logger.error("Failed to fetch %s: %s", source, cause, extra={"source": source})
            raise ExternalServiceError(source, cause) from exc
        except ValueError as exc:
            cause = "response body is not valid JSON"
            self.logger.error("Failed to fetch %s: %s", source, cause, extra={"source": source})
            raise ExternalServiceError(source, cause) from exc

    def fetch_countries(self) -> List[Dict[str, Any]]:
        """Return raw, unvalidated country entries in source order."""
        payload = self._get_json(COUNTRIES_SOURCE, self.countries_url, "COUNTRY_API")
        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            self.logger.error("Malformed payload from %s", COUNTRIES_SOURCE, extra={"source": COUNTRIES_SOURCE})
            raise ExternalServiceError(COUNTRIES_SOURCE, "expected a JSON array of country objects")

        self.logger.info(
            "Fetched %d countries", len(payload), extra={"source": COUNTRIES_SOURCE, "count": len(payload)}
        )
        return payload

    def fetch_exchange_rates(self) -> ExchangeRateSnapshot:
        payload = self._get_json(RATES_SOURCE, self.rates_url, "EXCHANGE_API")
        if not isinstance(payload, dict):
            self.logger.error("Malformed payload from %s", RATES_SOURCE, extra={"source": RATES_SOURCE})
            raise ExternalServiceError(RATES_SOURCE, "expected a JSON object")
        result = payload.get("result")
        if result is not None and result != "success":
            cause = f"reported result {result!r}"
            self.logger.error("Failed to fetch %s: %s", RATES_SOURCE, cause, extra={"source": RATES_SOURCE})
            raise ExternalServiceError(RATES_SOURCE, cause)

        try:
            snapshot = ExchangeRateSnapshot(
                base_code=payload.get("base_code"),
                rates=payload.get("rates"),
                fetched_at=datetime.now(timezone.utc),
            )
        except ValidationError as exc:
            self.logger.error("Malformed payload from %s: %s", RATES_SOURCE, exc, extra={"source": RATES_SOURCE})
            raise ExternalServiceError(RATES_SOURCE, "rates payload is malformed") from exc

        self.logger.info(
            "Fetched exchange rates for %d currencies",
            len(snapshot.rates),
            extra={"source": RATES_SOURCE, "count": len(snapshot.rates)},
        )
        return snapshot
