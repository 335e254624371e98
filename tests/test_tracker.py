"""
Tests for price tracking and the edge-triggered alert rule.
"""

import asyncio
import os
import shutil
import tempfile
import unittest

from deal_sentinel.errors import UpstreamError, ValidationError
from deal_sentinel.rules import best_price, should_alert
from deal_sentinel.storage import AlertLog, MemoryStore, TrackedGameRepository
from deal_sentinel.tracker import ALERT_TITLE, PriceTracker

from tests.fakes import FakeClock, FakeDealsClient, RecordingNotifier, result, tracked


class SchedulerSpy:
    def __init__(self):
        self.armed = 0

    def arm(self):
        self.armed += 1
        return True


class TestAlertRule(unittest.TestCase):

    def test_drop_below_target_alerts(self):
        self.assertTrue(should_alert(7.0, 8.0, 10.0))

    def test_price_equal_to_target_alerts(self):
        self.assertTrue(should_alert(8.0, 8.0, 10.0))

    def test_flat_price_below_target_is_quiet(self):
        self.assertFalse(should_alert(7.0, 8.0, 7.0))

    def test_rise_below_target_is_quiet(self):
        self.assertFalse(should_alert(7.5, 8.0, 7.0))

    def test_drop_above_target_is_quiet(self):
        self.assertFalse(should_alert(9.0, 8.0, 10.0))

    def test_best_price_is_minimum(self):
        deals = [{"price": "9.99"}, {"price": "4.99"}, {"price": "14.99"}]
        self.assertEqual(best_price(deals), 4.99)

    def test_best_price_skips_unusable_deals(self):
        deals = [{"price": None}, {"price": "abc"}, None, "x", {"salePrice": "3.00"}]
        self.assertEqual(best_price(deals), 3.0)
        self.assertIsNone(best_price([]))


class TestPriceTracker(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.repository = TrackedGameRepository(self.store)
        self.client = FakeDealsClient()
        self.notifier = RecordingNotifier()
        self.clock = FakeClock()
        self.tracker = PriceTracker(self.repository, self.client, self.notifier, clock=self.clock)

    def seed(self, *games):
        self.repository.save({g.id: g for g in games})

    async def test_rejects_non_positive_targets(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0))
        for bad in (0, -1, -0.01, None, "", "abc", float("nan")):
            with self.assertRaises(ValidationError):
                await self.tracker.add_tracked(result("612"), bad)
        games = self.repository.load()
        self.assertEqual(list(games), ["1"])

    async def test_rejects_infinite_target(self):
        with self.assertRaises(ValidationError):
            await self.tracker.add_tracked(result("612"), float("inf"))
        self.assertEqual(self.tracker.list_tracked(), [])

    async def test_rejects_unusable_seed_price(self):
        for bad in (-5, float("nan"), float("inf")):
            with self.assertRaises(ValidationError):
                await self.tracker.add_tracked(result("612", price=bad), 3)
        self.assertEqual(self.tracker.list_tracked(), [])

    async def test_free_game_can_be_tracked(self):
        game = await self.tracker.add_tracked(result("612", price=0.0), 3)
        self.assertEqual(game.current_price, 0.0)

    async def test_add_then_list_round_trip(self):
        game = await self.tracker.add_tracked(result("612", "Hades", 24.99), "12.5")
        self.assertEqual(game.added_at, "2026-10-19T12:00:01-07:00")

        listed = self.tracker.list_tracked()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0].id, "612")
        self.assertEqual(listed[0].title, "Hades")
        self.assertEqual(listed[0].target_price, 12.5)
        self.assertEqual(listed[0].current_price, 24.99)
        self.assertIsNone(listed[0].last_checked)

    async def test_add_overwrites_existing_record(self):
        await self.tracker.add_tracked(result("612", "Hades", 24.99), 12)
        await self.tracker.add_tracked(result("612", "Hades", 19.99), 10)
        listed = self.tracker.list_tracked()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0].target_price, 10.0)
        self.assertEqual(listed[0].current_price, 19.99)

    async def test_add_arms_scheduler(self):
        spy = SchedulerSpy()
        self.tracker.scheduler = spy
        await self.tracker.add_tracked(result(), 5)
        await self.tracker.add_tracked(result("99", "Celeste"), 5)
        self.assertEqual(spy.armed, 2)

    async def test_remove_absent_is_noop(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0))
        removed = await self.tracker.remove_tracked("nope")
        self.assertFalse(removed)
        self.assertEqual(list(self.repository.load()), ["1"])

    async def test_remove_present(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0))
        self.assertTrue(await self.tracker.remove_tracked("1"))
        self.assertEqual(self.tracker.list_tracked(), [])

    async def test_alert_fires_once_per_drop(self):
        self.seed(tracked("612", "Hades", 10.0, 8.0))
        self.client.prices["612"] = [7.0, 9.5]

        report = await self.tracker.refresh_all()
        self.assertEqual(len(report.alerts), 1)
        self.assertEqual(self.repository.load()["612"].current_price, 7.0)
        self.assertEqual(self.notifier.alerts, [
            (ALERT_TITLE, "Hades is now $7.00 (was $10.00)", 2),
        ])

        report = await self.tracker.refresh_all()
        self.assertEqual(report.alerts, [])
        self.assertEqual(len(self.notifier.alerts), 1)

    async def test_rise_below_target_updates_without_alert(self):
        self.seed(tracked("612", "Hades", 7.0, 8.0))
        self.client.prices["612"] = [7.5]

        report = await self.tracker.refresh_all()
        self.assertEqual(report.alerts, [])
        game = self.repository.load()["612"]
        self.assertEqual(game.current_price, 7.5)
        self.assertIsNotNone(game.last_checked)

    async def test_partial_failure_is_isolated(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0), tracked("2", "Hades", 10.0, 8.0))
        self.client.prices["1"] = UpstreamError("HTTP error 500", status=500)
        self.client.prices["2"] = [6.0]

        report = await self.tracker.refresh_all()
        self.assertEqual((report.checked, report.failed, report.succeeded), (2, 1, 1))

        games = self.repository.load()
        self.assertEqual(games["1"].current_price, 20.0)
        self.assertEqual(games["1"].last_error, "HTTP error 500")
        self.assertIsNotNone(games["1"].last_checked)
        self.assertEqual(games["2"].current_price, 6.0)
        self.assertIsNone(games["2"].last_error)
        self.assertIsNotNone(games["2"].last_checked)
        self.assertEqual(len(report.alerts), 1)

    async def test_malformed_deals_are_isolated(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0), tracked("2", "Hades", 10.0, 8.0))
        self.client.prices["1"] = [None, "x"]
        self.client.prices["2"] = [6.0]

        report = await self.tracker.refresh_all()
        self.assertEqual((report.checked, report.failed), (2, 1))

        games = self.repository.load()
        self.assertEqual(games["1"].current_price, 20.0)
        self.assertEqual(games["1"].last_error, "no deals returned")
        self.assertEqual(games["2"].current_price, 6.0)
        self.assertIsNone(games["2"].last_error)

    async def test_track_or_remove_is_not_a_refresh(self):
        self.assertFalse(self.tracker.is_refreshing)
        async with self.tracker._lock:
            self.assertFalse(self.tracker.is_refreshing)

    async def test_no_deals_is_a_record_failure(self):
        self.seed(tracked("1", "Celeste", 20.0, 5.0))
        report = await self.tracker.refresh_all()
        self.assertEqual(report.failed, 1)
        self.assertEqual(self.repository.load()["1"].last_error, "no deals returned")

    async def test_success_clears_previous_error(self):
        game = tracked("1", "Celeste", 20.0, 5.0)
        game.last_error = "HTTP error 502"
        self.seed(game)
        self.client.prices["1"] = [18.0]
        await self.tracker.refresh_all()
        self.assertIsNone(self.repository.load()["1"].last_error)

    async def test_failure_keeps_baseline_for_next_alert(self):
        self.seed(tracked("612", "Hades", 10.0, 8.0))
        self.client.prices["612"] = UpstreamError("request failed: timeout")
        await self.tracker.refresh_all()
        self.client.prices["612"] = [7.0]
        report = await self.tracker.refresh_all()
        self.assertEqual(len(report.alerts), 1)
        self.assertEqual(report.alerts[0].old_price, 10.0)

    async def test_track_waits_for_running_refresh(self):
        self.seed(tracked("612", "Hades", 10.0, 8.0))
        self.client.prices["612"] = [9.0]
        self.client.gate = asyncio.Event()

        refresh = asyncio.create_task(self.tracker.refresh_all())
        while not self.client.deal_calls:
            await asyncio.sleep(0)
        self.assertTrue(self.tracker.is_refreshing)

        add = asyncio.create_task(self.tracker.add_tracked(result("99", "Celeste", 15.0), 5))
        await asyncio.sleep(0)
        self.assertFalse(add.done())

        self.client.gate.set()
        await asyncio.gather(refresh, add)

        games = self.repository.load()
        self.assertEqual(set(games), {"612", "99"})
        self.assertEqual(games["612"].current_price, 9.0)


class TestAlertLogging(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.log = AlertLog(os.path.join(self.temp_dir, "alerts.csv"))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_alerts_are_logged(self):
        repository = TrackedGameRepository(MemoryStore())
        repository.save({"0042": tracked("0042", "Hades, Deluxe", 10.0, 8.0)})
        client = FakeDealsClient({"0042": [7.0]})
        tracker = PriceTracker(repository, client, RecordingNotifier(), alert_log=self.log, clock=FakeClock())

        await tracker.refresh_all()

        rows = self.log.recent()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["game_id"], "0042")
        self.assertEqual(rows[0]["title"], "Hades, Deluxe")
        self.assertEqual(rows[0]["new_price"], 7.0)


if __name__ == "__main__":
    unittest.main()
