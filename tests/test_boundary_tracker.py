import unittest

from hedge_bot.strategy.boundary_tracker import BoundaryTracker
from tests.fakes import FakeBoundaryStore, FakeLogger, FakeNotifier, make_config


class BoundaryTrackerTests(unittest.TestCase):
    def setUp(self):
        self.store = FakeBoundaryStore()
        self.logger = FakeLogger()
        self.notifier = FakeNotifier()
        self.tracker = BoundaryTracker(make_config(), store=self.store, logger=self.logger, notifier=self.notifier)

    def test_initialize_sell_main_sets_top_only(self):
        self.tracker.initialize("Sell", 50000.0)
        self.assertEqual(self.tracker.top, 50100.0)
        self.assertIsNone(self.tracker.bottom)
        self.assertEqual(self.store.state["boundaries"], {"top": 50100.0, "bottom": None})

    def test_initialize_without_main_is_symmetric(self):
        self.tracker.initialize(None, 50000.0)
        self.assertEqual((self.tracker.bottom, self.tracker.top), (49900.0, 50100.0))

    def test_hedge_trigger_uses_tolerance(self):
        self.tracker.initialize("Buy", 50000.0)
        self.assertEqual(self.tracker.bottom, 49900.0)
        self.assertFalse(self.tracker.hedge_triggered("Buy", 49905.1))
        self.assertTrue(self.tracker.hedge_triggered("Buy", 49905.0))
        # breach has no tolerance
        self.assertFalse(self.tracker.breached("Buy", 49905.0))
        self.assertTrue(self.tracker.breached("Buy", 49900.0))

    def test_hedge_trigger_sell(self):
        self.tracker.initialize("Sell", 50000.0)
        self.assertFalse(self.tracker.hedge_triggered("Sell", 50094.9))
        self.assertTrue(self.tracker.hedge_triggered("Sell", 50095.0))

    def test_trail_only_tightens(self):
        self.tracker.initialize("Buy", 50000.0)
        self.assertTrue(self.tracker.trail("Buy", 50050.0))
        self.assertEqual(self.tracker.bottom, 49950.0)

        self.assertFalse(self.tracker.trail("Buy", 49990.0))
        self.assertEqual(self.tracker.bottom, 49950.0)

        self.tracker.initialize("Sell", 50000.0)
        self.assertTrue(self.tracker.trail("Sell", 49950.0))
        self.assertEqual(self.tracker.top, 50050.0)
        self.assertIsNone(self.tracker.bottom)
        self.assertFalse(self.tracker.trail("Sell", 50100.0))
        self.assertEqual(self.tracker.top, 50050.0)

    def test_reset_after_hedge_uses_new_spacing(self):
        self.tracker.reset_after_hedge("Buy", 50000.0)
        self.assertEqual((self.tracker.bottom, self.tracker.top), (49850.0, None))

        self.tracker.initialize(None, 50000.0)
        self.tracker.reset_after_hedge(None, 48000.0)
        self.assertEqual((self.tracker.bottom, self.tracker.top), (49900.0, 50100.0))

    def test_persistence_failure_is_reported_not_raised(self):
        self.store.fail = True
        self.tracker.initialize("Buy", 50000.0)

        self.assertEqual(self.tracker.bottom, 49900.0)
        self.assertTrue(any("persistence failure" in m for m in self.logger.messages("ERROR")))
        self.assertTrue(any("Persistence failure" in m for m in self.notifier.messages))

    def test_notifier_failure_does_not_break_update(self):
        tracker = BoundaryTracker(make_config(), store=self.store, logger=self.logger, notifier=FakeNotifier(fail=True))
        tracker.initialize("Sell", 50000.0)
        self.assertEqual(tracker.top, 50100.0)
        self.assertTrue(any("send error" in m for m in self.logger.messages("ERROR")))

    def test_load_runs_once(self):
        self.store.state = {"trailing_boundary": 7, "boundaries": {"top": 51000.0, "bottom": None}}
        self.assertTrue(self.tracker.load())
        self.assertEqual(self.tracker.top, 51000.0)
        self.assertEqual(self.tracker.trailing_boundary, 7)

        self.store.state = {"trailing_boundary": None, "boundaries": {"top": 1.0, "bottom": None}}
        self.assertFalse(self.tracker.load())
        self.assertEqual(self.tracker.top, 51000.0)

    def test_legacy_trailing_value_is_carried_through(self):
        self.store.state = {"trailing_boundary": {"legacy": True}, "boundaries": {"top": None, "bottom": None}}
        self.tracker.load()
        self.tracker.initialize(None, 50000.0)
        self.assertEqual(self.store.state["trailing_boundary"], {"legacy": True})

    def test_clear(self):
        self.tracker.initialize(None, 50000.0)
        self.tracker.lock()
        self.tracker.clear()
        self.assertTrue(self.tracker.is_empty())
        self.assertFalse(self.tracker.locked)
        self.assertIsNone(self.store.state)


if __name__ == "__main__":
    unittest.main()
