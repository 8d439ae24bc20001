"""
Unit tests for ActiveModifierSet.
"""
import unittest

from powerquiz.models import ActiveModifier
from powerquiz.modifiers import ActiveModifierSet
from powerquiz.power_ups import FIRE_FLOWER, ONE_UP_MUSHROOM, STAR_POWER, SUPER_MUSHROOM


class TestActiveModifierSet(unittest.TestCase):
    """Test cases for admitting, decaying and pruning modifiers."""

    def test_admit_double_points_is_usage_based(self):
        modifiers = ActiveModifierSet().admit(FIRE_FLOWER)
        (modifier,) = modifiers
        self.assertEqual(modifier.remaining_uses, 3)
        self.assertIsNone(modifier.remaining_time)

    def test_admit_timed_power_ups(self):
        modifiers = ActiveModifierSet().admit(STAR_POWER).admit(SUPER_MUSHROOM)
        self.assertEqual([m.remaining_time for m in modifiers], [30, 60])

    def test_admit_extra_life_rejected(self):
        with self.assertRaises(ValueError):
            ActiveModifierSet().admit(ONE_UP_MUSHROOM)

    def test_operations_return_new_sets(self):
        original = ActiveModifierSet().admit(STAR_POWER)
        advanced = original.advance(5)
        self.assertEqual(original.modifiers[0].remaining_time, 30)
        self.assertEqual(advanced.modifiers[0].remaining_time, 25)

    def test_advance_expires_timed_modifier(self):
        modifiers = ActiveModifierSet().admit(STAR_POWER)
        for _ in range(29):
            modifiers = modifiers.advance()
        self.assertTrue(modifiers.has_immunity())
        modifiers = modifiers.advance()
        self.assertFalse(modifiers.has_immunity())
        self.assertEqual(len(modifiers), 0)

    def test_advance_leaves_usage_based_alone(self):
        modifiers = ActiveModifierSet().admit(FIRE_FLOWER).advance(100)
        self.assertEqual(modifiers.modifiers[0].remaining_uses, 3)

    def test_consume_use_expires_after_three(self):
        modifiers = ActiveModifierSet().admit(FIRE_FLOWER).admit(STAR_POWER)
        for _ in range(3):
            self.assertEqual(modifiers.multiplier(), 2)
            modifiers = modifiers.consume_use()
        self.assertEqual(modifiers.multiplier(), 1)
        self.assertEqual(len(modifiers), 1)
        self.assertTrue(modifiers.has_immunity())

    def test_expired_modifiers_never_kept(self):
        expired = ActiveModifier(STAR_POWER, remaining_time=0)
        self.assertEqual(len(ActiveModifierSet([expired])), 0)

    def test_same_power_up_can_stack(self):
        modifiers = ActiveModifierSet().admit(FIRE_FLOWER).admit(FIRE_FLOWER)
        self.assertEqual(modifiers.multiplier(), 4)

    def test_equality(self):
        self.assertEqual(ActiveModifierSet().admit(STAR_POWER), ActiveModifierSet().admit(STAR_POWER))
        self.assertNotEqual(ActiveModifierSet().admit(STAR_POWER), ActiveModifierSet())


if __name__ == '__main__':
    unittest.main()
