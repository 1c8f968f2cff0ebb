import unittest

from game import (
    FACE_DOWN,
    SPREAD,
    Card,
    ProgrammerError,
    calc_flags,
    card_name,
    parse_card_name,
)


class TestCards(unittest.TestCase):
    def test_given_switches_when_packing_flags_then_bits_match_layout(self):
        self.assertEqual(calc_flags(), 0)
        self.assertEqual(calc_flags(face_down=True), FACE_DOWN)
        self.assertEqual(calc_flags(spread=True), SPREAD)
        self.assertEqual(calc_flags(2, True, True), 0x1A)
        # Highlight codes are limited to three bits
        self.assertEqual(calc_flags(9), 1)

    def test_given_card_when_reading_properties_then_suit_rank_and_flags_decoded(self):
        c = Card(4, 22, 3, 5, calc_flags(3, face_down=False, spread=True))
        self.assertEqual(c.suit, 1)
        self.assertEqual(c.rank, 9)
        self.assertEqual(c.highlight, 3)
        self.assertTrue(c.face_up)
        self.assertFalse(c.face_down)
        self.assertTrue(c.spread)
        self.assertEqual(c.short_name, '10H')
        self.assertIn('10 of Hearts', str(c))

    def test_given_card_when_with_changes_then_unspecified_fields_copied(self):
        c = Card(3, 10, 2, 4, calc_flags(1, face_down=True))
        d = c.with_changes(face_down=False)
        self.assertEqual((d.generation, d.value, d.group, d.position), (3, 10, 2, 4))
        self.assertEqual(d.highlight, 1)
        self.assertTrue(d.face_up)
        self.assertFalse(d.spread)
        # Original is untouched
        self.assertTrue(c.face_down)

        e = c.with_changes(generation=7, group=5, position=0, highlight=0, spread=True)
        self.assertEqual((e.generation, e.group, e.position, e.highlight), (7, 5, 0, 0))
        self.assertTrue(e.face_down)
        self.assertTrue(e.spread)

    def test_given_bad_fields_when_creating_card_then_programmer_error(self):
        with self.assertRaises(ProgrammerError):
            Card(0, 52, 0, 0)
        with self.assertRaises(ProgrammerError):
            Card(0, -1, 0, 0)
        with self.assertRaises(ProgrammerError):
            Card(-1, 0, 0, 0)
        with self.assertRaises(ProgrammerError):
            Card(0, 0, -1, 0)

    def test_given_two_cards_when_only_highlight_differs_then_same_layout(self):
        a = Card(0, 7, 1, 2, calc_flags(0, spread=True))
        b = Card(5, 7, 1, 2, calc_flags(2, spread=True))
        self.assertTrue(a.same_layout(b))
        self.assertFalse(a.same_layout(b.with_changes(spread=False)))
        self.assertFalse(a.same_layout(b.with_changes(position=3)))

    def test_given_names_when_parsing_then_values_returned(self):
        self.assertEqual(card_name(0), 'AS')
        self.assertEqual(card_name(51), 'KD')
        self.assertEqual(parse_card_name('as'), 0)
        self.assertEqual(parse_card_name('10h'), 22)
        self.assertEqual(parse_card_name('TH'), 22)
        self.assertEqual(parse_card_name('QC'), 37)
        self.assertEqual(parse_card_name('37'), 37)
        for bad in ('ZZ', '1S', 'K', '52', 'KX'):
            with self.assertRaises(ValueError):
                parse_card_name(bad)


if __name__ == '__main__':
    unittest.main(verbosity=2)
