"""
Tests for environment-driven settings.
"""
from settings import LookbackPolicy, Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STEAM_ALERTS_GROUP_WINDOW_MINUTES", raising=False)
        settings = Settings(_env_file=None)
        assert settings.group_window_minutes == 5
        assert settings.lookback_policy == LookbackPolicy.OLDEST_AVAILABLE
        assert settings.alert_footer_text == "SteamPulse Alert"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("STEAM_ALERTS_GROUP_WINDOW_MINUTES", "10")
        monkeypatch.setenv("STEAM_ALERTS_LOOKBACK_POLICY", "strict")
        monkeypatch.setenv("STEAM_ALERTS_DYNAMIC_PRIORITY", "true")

        settings = Settings(_env_file=None)

        assert settings.group_window_minutes == 10
        assert settings.lookback_policy == LookbackPolicy.STRICT
        assert settings.dynamic_priority is True
