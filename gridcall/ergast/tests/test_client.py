"""Tests for the Ergast client."""

from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from gridcall.ergast.client import ErgastClient, ErgastError, normalize_results


def _row(position, driver_id, grid='5', fastest_rank=None):
    row = {
        'position': str(position),
        'grid': grid,
        'Driver': {'driverId': driver_id},
    }
    if fastest_rank is not None:
        row['FastestLap'] = {'rank': str(fastest_rank)}
    return row


def _response(races):
    mock_response = MagicMock()
    mock_response.json.return_value = {'MRData': {'RaceTable': {'Races': races}}}
    mock_response.raise_for_status = MagicMock()
    return mock_response


class ErgastClientTest(SimpleTestCase):
    """Tests for ErgastClient."""

    def setUp(self):
        self.client = ErgastClient(base_url='https://ergast.test/f1/', timeout=5)

    @patch('gridcall.ergast.client.requests.Session.get')
    def test_get_race_results(self, mock_get):
        mock_get.side_effect = [
            _response([
                {
                    'Results': [
                        _row(2, 'norris', grid='1', fastest_rank=1),
                        _row(1, 'max_verstappen', grid='2', fastest_rank=3),
                        _row(3, 'leclerc', grid='4'),
                    ]
                }
            ]),
            _response([]),
        ]

        result = self.client.get_session_results(2024, 5, 'RACE')

        self.assertEqual(
            result['positions'],
            [
                {'position': 1, 'driverId': 'max_verstappen'},
                {'position': 2, 'driverId': 'norris'},
                {'position': 3, 'driverId': 'leclerc'},
            ],
        )
        self.assertEqual(result['pole'], 'norris')
        self.assertEqual(result['fastestLap'], {'driverId': 'norris'})
        first_call, second_call = mock_get.call_args_list
        self.assertEqual(first_call.args[0], 'https://ergast.test/f1/2024/5/results.json')
        self.assertEqual(first_call.kwargs['timeout'], 5)
        self.assertEqual(second_call.args[0], 'https://ergast.test/f1/2024/5/qualifying.json')

    @patch('gridcall.ergast.client.requests.Session.get')
    def test_race_pole_comes_from_qualifying(self, mock_get):
        # Leclerc qualified first but started from the back after a grid penalty.
        mock_get.side_effect = [
            _response([
                {
                    'Results': [
                        _row(1, 'norris', grid='1'),
                        _row(2, 'leclerc', grid='20'),
                    ]
                }
            ]),
            _response([
                {
                    'QualifyingResults': [
                        {'position': '2', 'Driver': {'driverId': 'norris'}},
                        {'position': '1', 'Driver': {'driverId': 'leclerc'}},
                    ]
                }
            ]),
        ]

        result = self.client.get_session_results(2024, 5, 'RACE')

        self.assertEqual(result['pole'], 'leclerc')

    @patch('gridcall.ergast.client.requests.Session.get')
    def test_get_sprint_results_uses_sprint_endpoint(self, mock_get):
        mock_get.return_value = _response([{'SprintResults': [_row(1, 'piastri', grid='1')]}])

        result = self.client.get_session_results(2024, 6, 'SPRINT')

        self.assertEqual(result['positions'], [{'position': 1, 'driverId': 'piastri'}])
        self.assertIsNone(result['fastestLap'])
        args, _ = mock_get.call_args
        self.assertTrue(args[0].endswith('/2024/6/sprint.json'))

    @patch('gridcall.ergast.client.requests.Session.get')
    def test_returns_none_when_no_results_published(self, mock_get):
        mock_get.return_value = _response([])

        self.assertIsNone(self.client.get_session_results(2024, 20, 'RACE'))

    @patch('gridcall.ergast.client.requests.Session.get')
    def test_request_failure_is_raised(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('boom')

        with self.assertLogs('gridcall.ergast.client', level='ERROR'):
            with self.assertRaises(requests.RequestException):
                self.client.get_session_results(2024, 1, 'RACE')

    def test_unsupported_session_type(self):
        with self.assertRaises(ValueError):
            self.client.get_session_results(2024, 1, 'QUALIFYING')

    @override_settings(ERGAST_BASE_URL='https://mirror.test/ergast', ERGAST_TIMEOUT=12)
    def test_defaults_come_from_settings(self):
        client = ErgastClient()

        self.assertEqual(client.base_url, 'https://mirror.test/ergast')
        self.assertEqual(client.timeout, 12)


class NormalizeResultsTest(SimpleTestCase):
    def test_invalid_row_raises(self):
        with self.assertRaises(ErgastError):
            normalize_results([{'position': 'DNF', 'Driver': {'driverId': 'sargeant'}}])

    def test_missing_pole_and_fastest_lap(self):
        result = normalize_results([_row(1, 'hamilton')])

        self.assertIsNone(result['pole'])
        self.assertIsNone(result['fastestLap'])
