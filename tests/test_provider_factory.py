import datetime as dt
import unittest

import skycheck.data_sources.factory as factory
from skycheck.data_sources.base import CallableProviderClient
from skycheck.data_sources.factory import DEFAULT_PROVIDER_NAME, build_provider
from skycheck.domain import Location


class DummySettings:
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)
        # provide defaults if not passed
        self.provider = getattr(self, "provider", DEFAULT_PROVIDER_NAME)
        self.meteomatics_username = getattr(self, "meteomatics_username", "u")
        self.meteomatics_password = getattr(self, "meteomatics_password", "p")


class TestProviderFactory(unittest.TestCase):
    def setUp(self):
        self._orig_instant = factory.fetch_instant
        self._orig_range = factory.fetch_range

    def tearDown(self):
        factory.fetch_instant = self._orig_instant
        factory.fetch_range = self._orig_range

    def test_build_meteomatics_default(self):
        provider = build_provider(DummySettings())
        self.assertIsInstance(provider, CallableProviderClient)

    def test_name_is_case_insensitive(self):
        provider = build_provider(DummySettings(provider="Meteomatics"))
        self.assertIsInstance(provider, CallableProviderClient)

    def test_unknown_provider_raises(self):
        with self.assertRaises(ValueError):
            build_provider(DummySettings(provider="unknown-source"))

    def test_missing_credentials_still_builds(self):
        provider = build_provider(DummySettings(meteomatics_username=None))
        self.assertIsInstance(provider, CallableProviderClient)

    def test_calls_are_bound_to_settings(self):
        settings = DummySettings()
        seen = {}

        def fake_instant(location, instant, parameters, *, settings):
            seen["instant"] = settings
            return {p: 1.0 for p in parameters}

        def fake_range(location, start, end, timestep, parameters, *, settings):
            seen["range"] = (settings, timestep)
            return []

        factory.fetch_instant = fake_instant
        factory.fetch_range = fake_range

        provider = build_provider(settings)
        now = dt.datetime(2026, 10, 18, tzinfo=dt.timezone.utc)
        loc = Location(lat=1.0, lon=2.0)
        self.assertEqual(provider.fetch_instant(loc, now, ["t_2m:C"]), {"t_2m:C": 1.0})
        self.assertEqual(provider.fetch_range(loc, now, now, "PT1H", ["t_2m:C"]), [])
        self.assertIs(seen["instant"], settings)
        self.assertEqual(seen["range"], (settings, "PT1H"))


if __name__ == "__main__":
    unittest.main()
