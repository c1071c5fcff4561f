from unittest.mock import MagicMock

import pytest

from src.feeds.base import ExchangeRateResult, FeedError
from src.notifications.formatter import RATE_UNAVAILABLE_MESSAGE
from src.updaters.exchange_rate import ExchangeRateUpdater

TOKEN_A = "ExponentPushToken[aaaaaaaaaaaaaaaaaaaaaa]"
TOKEN_B = "ExponentPushToken[bbbbbbbbbbbbbbbbbbbbbb]"
GOOD_RATES = ExchangeRateResult(
    success=True, rates={"CNY": 7.2, "JPY": 150.0, "JPY_CNY": 0.048}, timestamp="t"
)


@pytest.fixture
def registry():
    return MagicMock()


@pytest.fixture
def devices():
    mock_devices = MagicMock()
    mock_devices.get_all_devices.return_value = [MagicMock(), MagicMock()]
    mock_devices.get_active_tokens.return_value = [TOKEN_A, TOKEN_B]
    return mock_devices


@pytest.fixture
def rates():
    mock_rates = MagicMock()
    mock_rates.get_exchange_rates.return_value = GOOD_RATES
    return mock_rates


@pytest.fixture
def updater(registry, devices, rates):
    return ExchangeRateUpdater(registry, devices, rates, cron_expression="0 */30 * * * *")


class TestExchangeRateUpdater:
    def test_start_schedules_job(self, updater, registry):
        assert updater.start() is True

        registry.schedule_recurring.assert_called_once_with(
            "exchange-rate-update",
            "0 */30 * * * *",
            [TOKEN_A, TOKEN_B],
            "日元汇率更新",
            "当前日元兑人民币汇率：\n100 JPY = 4.8000 CNY",
            {"type": "exchange_rate"},
        )
        assert updater.running is True

    def test_start_without_devices(self, updater, registry, devices):
        devices.get_active_tokens.return_value = []

        assert updater.start() is False
        registry.schedule_recurring.assert_not_called()
        assert updater.running is False

    def test_start_with_bad_feed(self, updater, registry, rates):
        rates.get_exchange_rates.return_value = ExchangeRateResult(success=False, error="down")

        with pytest.raises(FeedError):
            updater.start()
        registry.schedule_recurring.assert_not_called()

    def test_start_with_invalid_device_data(self, updater, devices):
        devices.get_all_devices.return_value = None

        with pytest.raises(RuntimeError):
            updater.start()

    def test_stop(self, updater, registry):
        updater.start()
        updater.stop()

        registry.cancel.assert_called_once_with("exchange-rate-update")
        assert updater.running is False

    def test_stop_when_not_running(self, updater, registry):
        updater.stop()
        registry.cancel.assert_not_called()

    def test_restart_picks_up_new_devices(self, updater, registry, devices):
        updater.start()
        devices.get_active_tokens.return_value = [TOKEN_A]

        assert updater.restart() is True

        registry.cancel.assert_called_once_with("exchange-rate-update")
        assert registry.schedule_recurring.call_count == 2
        assert registry.schedule_recurring.call_args.args[2] == [TOKEN_A]

    def test_build_message_when_rates_unavailable(self, updater, rates):
        rates.get_exchange_rates.return_value = ExchangeRateResult(success=False)
        assert updater.build_message() == RATE_UNAVAILABLE_MESSAGE

    def test_class_data_is_read_only(self, updater, registry):
        with pytest.raises(TypeError):
            ExchangeRateUpdater.data["type"] = "changed"

        updater.start()
        data = registry.schedule_recurring.call_args.args[5]
        data["type"] = "changed"
        assert ExchangeRateUpdater.data["type"] == "exchange_rate"
