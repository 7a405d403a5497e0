"""Tests for result payload parsing."""

from django.test import SimpleTestCase

from gridcall.predictions.results import MalformedResults, parse_race_results


def payload(drivers, **extra):
    data = {'positions': [{'position': index, 'driverId': driver} for index, driver in enumerate(drivers, 1)]}
    data.update(extra)
    return data


class ParseRaceResultsTest(SimpleTestCase):
    def test_parses_positions_pole_and_fastest_lap(self):
        results = parse_race_results(
            payload(['max_verstappen', 'norris'], pole='norris', fastestLap={'driverId': 'max_verstappen'})
        )

        self.assertEqual(results.positions, ('max_verstappen', 'norris'))
        self.assertEqual(results.pole, 'norris')
        self.assertEqual(results.fastest_lap, 'max_verstappen')

    def test_positions_are_sorted_and_truncated(self):
        raw = payload([f'driver_{index}' for index in range(1, 21)])
        raw['positions'].reverse()

        results = parse_race_results(raw)

        self.assertEqual(len(results.positions), 10)
        self.assertEqual(results.positions[0], 'driver_1')
        self.assertEqual(results.positions[-1], 'driver_10')

    def test_fastest_lap_as_plain_string(self):
        results = parse_race_results(payload(['hamilton'], fastestLap='hamilton'))

        self.assertEqual(results.fastest_lap, 'hamilton')

    def test_missing_pole_and_fastest_lap(self):
        results = parse_race_results(payload(['hamilton'], fastestLap=None))

        self.assertIsNone(results.pole)
        self.assertIsNone(results.fastest_lap)

    def test_string_positions_are_accepted(self):
        results = parse_race_results({'positions': [{'position': '1', 'driverId': 'alonso'}]})

        self.assertEqual(results.positions, ('alonso',))

    def test_malformed_payloads(self):
        cases = [
            None,
            [],
            {},
            {'positions': []},
            {'positions': 'max_verstappen'},
            {'positions': ['max_verstappen']},
            {'positions': [{'position': 'first', 'driverId': 'max_verstappen'}]},
            {'positions': [{'position': 0, 'driverId': 'max_verstappen'}]},
            {'positions': [{'position': 1}]},
            payload(['norris', 'norris']),
            payload(['norris'], pole=44),
        ]
        for case in cases:
            with self.subTest(payload=case):
                with self.assertRaises(MalformedResults):
                    parse_race_results(case)

    def test_malformed_results_is_a_value_error(self):
        self.assertTrue(issubclass(MalformedResults, ValueError))
