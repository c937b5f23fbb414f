from __future__ import annotations

import unittest

from app.services.numbering_service import next_requisition_number, parse_requisition_number
from tests.support import make_requisition


class NumberingServiceTests(unittest.TestCase):
    def test_empty_snapshot_starts_at_1000(self) -> None:
        self.assertEqual(next_requisition_number([]), 'R-1000')

    def test_increments_highest_number(self) -> None:
        self.assertEqual(next_requisition_number([make_requisition(1000)]), 'R-1001')

    def test_uses_maximum_regardless_of_order(self) -> None:
        snapshot = [make_requisition(1003), make_requisition(1010), make_requisition(1007)]
        self.assertEqual(next_requisition_number(snapshot), 'R-1011')

    def test_unparseable_numbers_fall_back_to_1000(self) -> None:
        req = make_requisition(1)
        req.requisition_number = 'garbage'
        self.assertEqual(next_requisition_number([req]), 'R-1000')

    def test_unparseable_numbers_are_ignored_next_to_valid_ones(self) -> None:
        broken = make_requisition(1, req_id='broken')
        broken.requisition_number = ''
        self.assertEqual(next_requisition_number([broken, make_requisition(1042)]), 'R-1043')

    def test_non_digit_characters_are_stripped(self) -> None:
        self.assertEqual(parse_requisition_number('R-12-5'), 125)
        self.assertIsNone(parse_requisition_number('R-'))
        self.assertIsNone(parse_requisition_number(None))

    def test_only_ascii_digits_count(self) -> None:
        req = make_requisition(1)
        req.requisition_number = 'R-１２'
        self.assertIsNone(parse_requisition_number(req.requisition_number))
        self.assertEqual(next_requisition_number([req]), 'R-1000')


if __name__ == '__main__':
    unittest.main()
