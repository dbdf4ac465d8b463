"""
Test suite for cards and decks.

Covers:
- Pip values, run order and dealer-draw values
- Deck construction (52 unique cards)
- Seeded shuffles are reproducible
- Shuffles are unbiased: every ordering turns up about equally often
- Card (de)serialization

Run with: pytest test_cards.py -v
"""

import random
from collections import Counter
from itertools import permutations

import pytest

from cards import Card, Deck, Rank, Suit, create_deck, shuffle, cards_from_dicts, cards_to_dicts


# =============================================================================
# Card Values
# =============================================================================

class TestCardValues:
    """Pip values count faces as 10; run order and draw value rank them."""

    def test_ace_is_one_pip(self):
        assert Card(Suit.SPADES, Rank.ACE).value() == 1

    def test_faces_are_ten_pips(self):
        for rank in (Rank.TEN, Rank.JACK, Rank.QUEEN, Rank.KING):
            assert Card(Suit.HEARTS, rank).value() == 10

    def test_spot_cards_are_face_value(self):
        assert Card(Suit.CLUBS, Rank.SEVEN).value() == 7

    def test_run_order_ace_low_king_high(self):
        assert Card(Suit.CLUBS, Rank.ACE).order() == 1
        assert Card(Suit.CLUBS, Rank.JACK).order() == 11
        assert Card(Suit.CLUBS, Rank.KING).order() == 13

    def test_draw_value_ace_high(self):
        assert Card(Suit.DIAMONDS, Rank.ACE).draw_value() == 14
        assert Card(Suit.DIAMONDS, Rank.KING).draw_value() == 13
        assert Card(Suit.DIAMONDS, Rank.TWO).draw_value() == 2

    def test_str(self):
        assert str(Card(Suit.SPADES, Rank.TEN)) == "10♠"


# =============================================================================
# Deck
# =============================================================================

class TestDeck:
    """Deck construction and shuffling."""

    def test_create_deck_has_52_unique_cards(self):
        deck = create_deck()
        assert len(deck) == 52
        assert len(set(deck)) == 52

    def test_shuffle_returns_a_permutation(self):
        deck = create_deck()
        shuffled = shuffle(deck, random.Random(7))
        assert sorted(shuffled, key=str) == sorted(deck, key=str)

    def test_shuffle_leaves_input_untouched(self):
        deck = create_deck()
        original = list(deck)
        shuffle(deck, random.Random(7))
        assert deck == original

    def test_shuffle_is_unbiased(self):
        hand = create_deck()[:4]
        rng = random.Random(2024)
        trials = 24_000
        counts = Counter(tuple(shuffle(hand, rng)) for _ in range(trials))

        assert set(counts) == set(permutations(hand))
        expected = trials / 24
        # 23 degrees of freedom; 49.7 is the 0.1% critical value
        chi_square = sum((n - expected) ** 2 / expected for n in counts.values())
        assert chi_square < 49.7
        assert all(abs(n - expected) < 150 for n in counts.values())

    def test_first_card_lands_everywhere_evenly(self):
        hand = create_deck()[:3]
        rng = random.Random(5)
        positions = Counter(shuffle(hand, rng).index(hand[0]) for _ in range(9_000))

        assert sorted(positions) == [0, 1, 2]
        assert all(abs(n - 3_000) < 200 for n in positions.values())

    def test_same_seed_same_order(self):
        assert Deck(seed=42).cards == Deck(seed=42).cards

    def test_different_seeds_differ(self):
        assert Deck(seed=1).cards != Deck(seed=2).cards

    def test_deck_keeps_generated_seed(self):
        deck = Deck()
        assert deck.cards == Deck(seed=deck.seed).cards

    def test_draw_until_empty(self):
        deck = Deck(seed=3)
        drawn = [deck.draw() for _ in range(52)]
        assert len(set(drawn)) == 52
        assert deck.cards_remaining() == 0
        assert deck.draw() is None


# =============================================================================
# Serialization
# =============================================================================

class TestCardSerialization:
    """Cards serialize to {rank, suit, value}."""

    def test_to_dict(self):
        assert Card(Suit.HEARTS, Rank.QUEEN).to_dict() == {
            "rank": "Q", "suit": "hearts", "value": 10,
        }

    def test_round_trip(self):
        cards = create_deck()
        assert cards_from_dicts(cards_to_dicts(cards)) == cards

    def test_unknown_rank_rejected(self):
        with pytest.raises(ValueError):
            Card.from_dict({"rank": "Z", "suit": "hearts"})

    def test_unknown_suit_rejected(self):
        with pytest.raises(ValueError):
            Card.from_dict({"rank": "A", "suit": "stars"})
