import unittest

from tiers import get_required_tier_for_feature, get_tier, get_upgrade_prompt, has_feature


class TestTiers(unittest.TestCase):

    def test_get_tier_boundaries(self):
        self.assertEqual(get_tier(0).key, 'free')
        self.assertEqual(get_tier(999).key, 'free')
        self.assertEqual(get_tier(1000).key, 'scout')
        self.assertEqual(get_tier(4999.99).key, 'scout')
        self.assertEqual(get_tier(5000).key, 'pro')
        self.assertEqual(get_tier(25000).key, 'alpha')
        self.assertEqual(get_tier(10 ** 9).key, 'alpha')

    def test_negative_balance_is_free(self):
        self.assertEqual(get_tier(-1).key, 'free')

    def test_has_feature(self):
        self.assertTrue(has_feature(get_tier(0), 'trade'))
        self.assertFalse(has_feature(get_tier(0), 'signals'))
        self.assertTrue(has_feature(get_tier(1000), 'signals'))
        self.assertFalse(has_feature(get_tier(5000), 'predictions'))
        self.assertTrue(has_feature(get_tier(25000), 'predictions'))

    def test_higher_tiers_include_lower_features(self):
        for lower, higher in ((0, 1000), (1000, 5000), (5000, 25000)):
            self.assertTrue(set(get_tier(lower).features) <= set(get_tier(higher).features))

    def test_required_tier(self):
        self.assertEqual(get_required_tier_for_feature('spread').key, 'pro')
        self.assertEqual(get_required_tier_for_feature('trade').key, 'free')
        self.assertIsNone(get_required_tier_for_feature('teleport'))

    def test_upgrade_prompt(self):
        self.assertEqual(get_upgrade_prompt('hot_tab'), {'tier': 'Scout', 'tokens_needed': 1000})
        self.assertEqual(get_upgrade_prompt('predictions'), {'tier': 'Alpha', 'tokens_needed': 25000})
        self.assertIsNone(get_upgrade_prompt('teleport'))

    def test_custom_registry(self):
        registry = {
            'free': {'min_balance': 0, 'label': 'Free', 'color': '#000', 'features': ('a',)},
            'scout': {'min_balance': 10, 'label': 'Scout', 'color': '#111', 'features': ('a', 'b')},
        }
        self.assertEqual(get_tier(15, registry).label, 'Scout')
        self.assertEqual(get_upgrade_prompt('b', registry), {'tier': 'Scout', 'tokens_needed': 10})


if __name__ == '__main__':
    unittest.main()
