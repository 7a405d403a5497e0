"""HTTP client for the Jolpica/Ergast F1 results API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.jolpi.ca/ergast/f1'
DEFAULT_TIMEOUT = 30

# Session type -> (endpoint suffix, key of the result list inside a race)
SESSION_ENDPOINTS = {
    'RACE': ('results', 'Results'),
    'SPRINT': ('sprint', 'SprintResults'),
}


class ErgastError(Exception):
    """Raised when the API answers with data that cannot be used."""


class ErgastClient:
    """
    HTTP client for the Ergast-compatible API.

    Results are returned in the payload shape stored on
    ``RaceSession.results_json``.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        """
        Initialize the client.

        Args:
            base_url: API root, defaults to the ERGAST_BASE_URL setting
            timeout: Request timeout in seconds, defaults to ERGAST_TIMEOUT
        """
        base_url = base_url or getattr(settings, 'ERGAST_BASE_URL', DEFAULT_BASE_URL)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout or getattr(settings, 'ERGAST_TIMEOUT', DEFAULT_TIMEOUT)
        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})

    def _make_request(self, endpoint: str, params: Optional[dict] = None) -> dict[str, Any]:
        """
        Make a GET request to the API.

        Raises:
            requests.RequestException: If the request fails
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Ergast request failed for {endpoint}: {e}")
            raise

    def _get_races(self, response: Any) -> list[dict[str, Any]]:
        try:
            return response['MRData']['RaceTable']['Races']
        except (KeyError, TypeError):
            logger.warning(f"Unexpected Ergast response structure: {response}")
            return []

    def get_session_results(self, season: int, round: int, session_type: str = 'RACE') -> Optional[dict[str, Any]]:
        """
        Fetch the classification of a race or sprint.

        Args:
            season: Championship year
            round: Round number within the season
            session_type: 'RACE' or 'SPRINT'

        Returns:
            ``{"positions": [...], "pole": ..., "fastestLap": {...}}`` or
            None when the API has no results for the session yet.
        """
        if session_type not in SESSION_ENDPOINTS:
            raise ValueError(f"Unsupported session type: {session_type}")

        suffix, results_key = SESSION_ENDPOINTS[session_type]
        response = self._make_request(f'/{season}/{round}/{suffix}.json', params={'limit': 100})
        races = self._get_races(response)
        if not races:
            return None

        entries = races[0].get(results_key) or []
        if not entries:
            return None

        payload = normalize_results(entries)
        if session_type == 'RACE':
            pole = self.get_qualifying_pole(season, round)
            if pole:
                payload['pole'] = pole
        return payload

    def get_qualifying_pole(self, season: int, round: int) -> Optional[str]:
        """
        Fetch the driver who qualified first for a grand prix.

        Returns:
            Driver id, or None when qualifying results are not available
        """
        response = self._make_request(f'/{season}/{round}/qualifying.json', params={'limit': 100})
        races = self._get_races(response)
        if not races:
            return None

        for entry in races[0].get('QualifyingResults') or []:
            if str(entry.get('position')) == '1':
                return (entry.get('Driver') or {}).get('driverId')
        return None


def normalize_results(entries: list[dict[str, Any]]) -> dict[str, Any]:
    """Convert Ergast result rows into the stored results payload.

    The pole here is whoever started from grid slot 1, which differs from the
    qualifying pole after grid penalties. Race results replace it with the
    qualifying classification when that is published; sprint results keep it.
    """
    positions = []
    pole = None
    fastest_lap = None

    for entry in entries:
        try:
            position = int(entry['position'])
            driver_id = entry['Driver']['driverId']
        except (KeyError, TypeError, ValueError) as e:
            raise ErgastError(f"Invalid result row {entry!r}") from e

        positions.append({'position': position, 'driverId': driver_id})
        if str(entry.get('grid')) == '1':
            pole = driver_id
        if str((entry.get('FastestLap') or {}).get('rank')) == '1':
            fastest_lap = driver_id

    positions.sort(key=lambda item: item['position'])
    return {
        'positions': positions,
        'pole': pole,
        'fastestLap': {'driverId': fastest_lap} if fastest_lap else None,
    }


def build_ergast_client() -> ErgastClient:
    """Build a client from the configured settings."""
    return ErgastClient()
