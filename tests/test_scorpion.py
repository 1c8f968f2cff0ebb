import os
import tempfile
import unittest

import scorpion_core.dealer as dealer_mod
from game import (
    CARD_COUNT,
    Card,
    CardDatabase,
    Dealer,
    GameOutcome,
    GameVariant,
    ProgrammerError,
    calc_flags,
)
from scorpion_core.scorpion import KITTY_GROUP


def _order(*swaps):
    order = list(range(CARD_COUNT))
    for a, b in swaps:
        order[a], order[b] = order[b], order[a]
    return order


def _slot(dealer, value):
    card = dealer.find_card(value)
    return card.group, card.position


class TestScorpionRules(unittest.TestCase):
    def setUp(self):
        self._orig_shuffle = dealer_mod.shuffle_deck
        self.order = list(range(CARD_COUNT))
        dealer_mod.shuffle_deck = lambda seed=None: list(self.order)
        self.dealer = Dealer(CardDatabase(':memory:'), GameVariant.SCORPION)

    def tearDown(self):
        dealer_mod.shuffle_deck = self._orig_shuffle
        self.dealer.close()

    def _deal(self, *swaps):
        self.order = _order(*swaps)
        self.dealer.deal()
        return self.dealer

    def test_given_run_onto_column_foot_when_double_clicking_then_run_moves_and_kitty_spreads(self):
        # 7S ends column 2 and AH sits under 6S in column 1
        d = self._deal((6, 13))
        self.assertFalse(d.find_card(49).spread)
        self.assertTrue(d.double_click(5))
        self.assertEqual(d.generation, 1)
        self.assertEqual(_slot(d, 5), (1, 7))
        self.assertEqual(_slot(d, 13), (1, 8))
        # No move is left afterwards, so the kitty spreads in the same generation
        self.assertTrue(all(c.spread for c in d.group(KITTY_GROUP)))
        self.assertEqual([c.value for c in d.history.redo_delta(1)], [5, 13, 49, 50, 51])

        d.undo()
        self.assertEqual(_slot(d, 5), (0, 5))
        self.assertEqual(_slot(d, 13), (0, 6))
        self.assertFalse(d.find_card(49).spread)
        d.redo()
        self.assertEqual(_slot(d, 13), (1, 8))

    def test_given_selection_when_clicking_neighbours_then_highlights_and_move_follow(self):
        d = self._deal((6, 13))
        self.assertFalse(d.click(5))
        self.assertEqual(d.highlights, {5: 1, 4: 2, 6: 3})
        # Clicking the selected card again clears the selection
        self.assertFalse(d.click(5))
        self.assertEqual(d.highlights, {})

        d.click(5)
        # 8S is face down, so only 6S is marked
        self.assertFalse(d.click(6))
        self.assertEqual(d.highlights, {6: 1, 5: 2})
        self.assertEqual(d.generation, 0)

        self.assertTrue(d.click(5))
        self.assertEqual(d.generation, 1)
        self.assertEqual(_slot(d, 5), (1, 7))
        self.assertEqual(d.highlights, {})
        self.assertEqual(d.find_card(5).highlight, 0)

    def test_given_empty_column_when_double_clicking_king_then_it_moves_alone(self):
        # 5D ends column 6, so column 7 can be moved onto it
        d = self._deal((41, 43))
        self.assertTrue(d.double_click(42))
        self.assertEqual(d.generation, 1)
        self.assertEqual(len(d.history.redo_delta(1)), 7)
        self.assertEqual(d.group(6), [])
        self.assertEqual(len(d.group(5)), 14)

        self.assertTrue(d.double_click(12))
        self.assertEqual(_slot(d, 12), (6, 0))
        self.assertEqual(_slot(d, 13), (1, 5))

    def test_given_king_moves_with_run_when_double_clicking_king_then_cards_below_follow(self):
        d = self._deal((41, 43))
        d.set_options(king_moves_alone=False)
        d.double_click(42)
        self.assertTrue(d.double_click(12))
        self.assertEqual(_slot(d, 12), (6, 0))
        self.assertEqual(_slot(d, 13), (6, 1))
        self.assertEqual(len(d.group(1)), 5)

    def _deal_king_on_top(self, **options):
        # KD tops column 4 over 10H; 6D heads column 7 and fits under 7D at the foot of column 6
        self.order = (
            list(range(7))
            + [7, 8, 9, 10, 11, 13, 14]
            + list(range(15, 22))
            + [51, 22, 23, 24, 26, 27, 28]
            + list(range(29, 36))
            + [36, 37, 39, 40, 41, 42, 45]
            + [44, 43, 46, 47, 48, 49, 50]
            + [12, 25, 38]
        )
        if options:
            self.dealer.set_options(**options)
        self.dealer.deal()
        return self.dealer

    def test_given_king_on_top_of_column_without_alone_option_when_double_clicking_then_it_stays(self):
        d = self._deal_king_on_top(king_moves_alone=False)
        self.assertTrue(d.double_click(44))
        self.assertEqual(d.group(6), [])
        self.assertFalse(d.double_click(51))
        self.assertEqual(_slot(d, 51), (3, 0))
        self.assertEqual(d.generation, 1)

    def test_given_undo_leaves_no_moves_when_stepping_back_then_redo_survives(self):
        d = self._deal_king_on_top()
        self.assertTrue(d.double_click(44))
        self.assertFalse(d.find_card(12).spread)
        self.assertTrue(d.double_click(51))
        self.assertEqual(_slot(d, 51), (6, 0))
        self.assertEqual(d.generation, 2)
        # With the option off, generation 1 has nothing left to play
        d.set_options(king_moves_alone=False)

        d.undo()
        self.assertEqual((d.generation, d.max_generation), (1, 2))
        self.assertEqual(d.history.max_generation(), 2)
        self.assertTrue(d.can_redo())
        self.assertEqual(_slot(d, 51), (3, 0))
        self.assertFalse(any(c.spread for c in d.group(KITTY_GROUP)))
        self.assertFalse(d.options['king_moves_alone'])
        state = d.db.read_game_state('scorpion')
        self.assertEqual((state.generation, state.undone), (1, True))

        self.assertIsNotNone(d.redo())
        self.assertEqual(d.generation, 2)
        self.assertEqual(_slot(d, 51), (6, 0))

    def test_given_undone_game_without_moves_when_loading_then_redo_survives(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'scorpion.db')
            self.dealer.close()
            self.dealer = Dealer(CardDatabase(path), GameVariant.SCORPION)
            d = self._deal_king_on_top()
            d.double_click(44)
            d.double_click(51)
            d.undo()
            d.set_options(king_moves_alone=False)
            d.close()

            self.dealer = Dealer(CardDatabase(path))
            self.assertTrue(self.dealer.load())
            self.assertEqual((self.dealer.generation, self.dealer.max_generation), (1, 2))
            self.assertEqual(self.dealer.history.max_generation(), 2)
            self.assertFalse(any(c.spread for c in self.dealer.group(KITTY_GROUP)))
            self.assertIsNotNone(self.dealer.redo())
            self.assertEqual(_slot(self.dealer, 51), (6, 0))
            self.dealer.close()

    def test_given_move_cheat_when_double_clicking_king_then_placed_above_its_queen(self):
        d = self._deal()
        self.assertFalse(d.double_click(25))
        d.set_cheat('cheat_move_card')
        self.assertTrue(d.double_click(25))
        self.assertEqual(_slot(d, 25), (3, 3))
        self.assertEqual(_slot(d, 24), (3, 4))
        self.assertEqual(d.cheat_count, 1)

    def test_given_move_cheat_when_double_clicking_then_card_goes_below_higher_card_of_other_column(self):
        d = self._deal()
        d.set_cheat('cheat_move_card')
        self.assertTrue(d.double_click(27))
        self.assertEqual(_slot(d, 28), (4, 0))
        self.assertEqual(_slot(d, 27), (4, 1))
        self.assertEqual(_slot(d, 29), (4, 2))
        self.assertEqual(len(d.group(4)), 8)
        self.assertEqual(len(d.group(3)), 6)
        self.assertEqual(d.cheat_count, 1)

    def test_given_move_cheat_when_double_clicking_then_card_goes_below_higher_card_of_same_column(self):
        d = self._deal()
        d.set_cheat('cheat_move_card')
        self.assertTrue(d.double_click(19))
        self.assertEqual(_slot(d, 20), (2, 5))
        self.assertEqual(_slot(d, 19), (2, 6))
        self.assertEqual(d.cheat_count, 1)

    def test_given_move_cheat_when_clicking_marked_higher_card_then_placed_above_lower_card(self):
        d = self._deal()
        d.set_cheat('cheat_move_card')
        d.click(27)
        self.assertEqual(d.highlights[28], 3)
        self.assertTrue(d.click(28))
        self.assertEqual(_slot(d, 28), (3, 6))
        self.assertEqual(_slot(d, 27), (3, 7))
        self.assertEqual(len(d.group(4)), 6)
        self.assertEqual(d.cheat_count, 1)

    def test_given_flip_cheat_when_clicking_covered_card_then_flipped_and_counted(self):
        d = self._deal()
        self.assertFalse(d.click(2))
        self.assertTrue(d.find_card(2).face_down)

        d.set_cheat('cheat_card_flip')
        self.assertTrue(d.click(2))
        self.assertTrue(d.find_card(2).face_up)
        self.assertEqual(d.cheat_count, 1)
        self.assertEqual(d.db.read_game_state('scorpion').options['cheat_count'], 1)

        # Cheats last for one commit
        self.assertFalse(d.click(1))
        self.assertTrue(d.find_card(1).face_down)
        self.assertEqual(d.cheat_count, 1)

        d.deal()
        self.assertEqual(d.cheat_count, 0)

    def test_given_four_hidden_columns_when_dealt_then_top_three_cards_face_down(self):
        d = self._deal()
        d.set_options(hidden_card_column_count=4)
        d.deal()
        columns = d.groups()[:KITTY_GROUP]
        for column in columns[:4]:
            self.assertEqual([c.face_down for c in column], [True] * 3 + [False] * 4)
        for column in columns[4:]:
            self.assertFalse(any(c.face_down for c in column))
        # A covered card only turns over once it is the foot of its column
        self.assertFalse(d.click(22))
        self.assertTrue(d.find_card(22).face_down)

    def test_given_hidden_column_count_out_of_range_when_setting_then_value_error(self):
        d = self._deal()
        for count in (7, 2, -1):
            with self.assertRaises(ValueError):
                d.set_options(hidden_card_column_count=count)
        self.assertEqual(d.options['hidden_card_column_count'], 3)
        self.assertEqual(d.db.read_game_state('scorpion').options['hidden_card_column_count'], 3)

    def test_given_moved_kitty_option_when_flipping_spread_kitty_then_cards_join_columns(self):
        d = self._deal()
        d.set_options(move_kitty_when_flipped=True)
        self.assertTrue(d.click(50))
        self.assertEqual(d.group(KITTY_GROUP), [])
        self.assertEqual(_slot(d, 49), (2, 7))
        self.assertEqual(_slot(d, 50), (1, 7))
        self.assertEqual(_slot(d, 51), (0, 7))
        self.assertTrue(all(d.find_card(v).face_up for v in (49, 50, 51)))

    def test_given_run_when_moving_onto_own_column_then_programmer_error(self):
        d = self._deal()
        card = d.find_card(5)
        with self.assertRaises(ProgrammerError):
            d.with_undo(lambda g: d.engine._move_cards(card, card.group, None, g, False))
        self.assertEqual(d.generation, 0)
        self.assertEqual(_slot(d, 5), (0, 5))

    def test_given_four_complete_runs_when_checking_then_won(self):
        d = self._deal()
        d._cards = [
            Card(0, v, v // 13, 12 - v % 13, calc_flags(spread=True)) for v in range(CARD_COUNT)
        ]
        self.assertEqual(d.engine.check_game_over(1), GameOutcome.WON)

    def test_given_stuck_columns_when_checking_then_lost(self):
        d = self._deal()
        cards = [Card(0, v, v // 13, 12 - v % 13, calc_flags(spread=True)) for v in range(CARD_COUNT)]
        # Swap the aces of spades and hearts
        cards[0] = Card(0, 0, 1, 12, calc_flags(spread=True))
        cards[13] = Card(0, 13, 0, 12, calc_flags(spread=True))
        d._cards = cards
        self.assertEqual(d.engine.check_game_over(1), GameOutcome.LOST)


if __name__ == '__main__':
    unittest.main(verbosity=2)
