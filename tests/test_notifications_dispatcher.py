from unittest.mock import MagicMock, patch

import pytest

from src.config import get_settings
from src.notifications.base import PushMessage, PushReceipt, PushTicket
from src.notifications.dispatcher import GatewayState, PushDispatcher, chunked
from src.notifications.expo import ExpoPushClient, PushGatewayError

TOKEN_A = "ExponentPushToken[aaaaaaaaaaaaaaaaaaaaaa]"
TOKEN_B = "ExponentPushToken[bbbbbbbbbbbbbbbbbbbbbb]"
TOKEN_C = "ExponentPushToken[cccccccccccccccccccccc]"


def _settings(**overrides):
    return get_settings().model_copy(update=overrides)


@pytest.fixture
def gateway():
    mock_gateway = MagicMock()
    mock_gateway.access_token = "token"
    mock_gateway.probe.return_value = None
    mock_gateway.send_batch.side_effect = lambda batch: [
        PushTicket(status="ok", id=f"r-{m.to}") for m in batch
    ]
    return mock_gateway


class TestChunked:
    def test_chunked(self):
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
        assert list(chunked([], 2)) == []


class TestInitialize:
    def test_probe_success(self, gateway):
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.state is GatewayState.available
        gateway.probe.assert_called_once()

    def test_reachable_error_code_means_available(self, gateway):
        gateway.probe.side_effect = PushGatewayError(
            "bad request", code="VALIDATION_ERROR", status_code=400
        )
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.state is GatewayState.available

    def test_other_error_means_unavailable(self, gateway):
        gateway.probe.side_effect = PushGatewayError("connection refused", retryable=True)
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.state is GatewayState.unavailable
        assert dispatcher.available is False

    def test_without_probe_stays_uninitialized(self, gateway):
        dispatcher = PushDispatcher(gateway, probe=False)
        assert dispatcher.state is GatewayState.uninitialized
        gateway.probe.assert_not_called()

    def test_missing_access_token_still_probes(self, gateway):
        gateway.access_token = ""
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.state is GatewayState.available


class TestCreateMessage:
    def test_applies_defaults(self, gateway):
        dispatcher = PushDispatcher(gateway)
        message = dispatcher.create_message(TOKEN_A, "标题", "内容", {"type": "x"})

        settings = get_settings()
        assert isinstance(message, PushMessage)
        assert message.to == TOKEN_A
        assert message.data == {"type": "x"}
        assert message.ttl == settings.push_default_ttl
        assert message.priority == settings.push_default_priority
        assert message.channel_id == settings.push_default_channel_id

    def test_invalid_token_returns_none(self, gateway):
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.create_message("not-a-token", "t", "b") is None

    def test_data_is_copied(self, gateway):
        dispatcher = PushDispatcher(gateway)
        data = {"type": "x"}
        message = dispatcher.create_message(TOKEN_A, "t", "b", data)
        data["type"] = "changed"
        assert message.data == {"type": "x"}


class TestSend:
    def test_send_returns_tickets_in_order(self, gateway):
        dispatcher = PushDispatcher(gateway)
        messages = [dispatcher.create_message(t, "t", "b") for t in (TOKEN_A, TOKEN_B)]

        tickets = dispatcher.send(messages)

        assert [t.id for t in tickets] == [f"r-{TOKEN_A}", f"r-{TOKEN_B}"]
        gateway.send_batch.assert_called_once()

    def test_empty_input(self, gateway):
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.send([]) == []
        assert dispatcher.send([None, None]) == []
        gateway.send_batch.assert_not_called()

    def test_unavailable_gateway_performs_no_io(self, gateway):
        gateway.probe.side_effect = PushGatewayError("down")
        dispatcher = PushDispatcher(gateway)

        tickets = dispatcher.send([PushMessage(to=TOKEN_A, title="t", body="b")])

        assert tickets == []
        gateway.send_batch.assert_not_called()

    def test_invalid_tokens_are_dropped(self, gateway):
        dispatcher = PushDispatcher(gateway)
        tickets = dispatcher.send_to_tokens([TOKEN_A, "bogus"], "t", "b")
        assert len(tickets) == 1
        sent = gateway.send_batch.call_args.args[0]
        assert [m.to for m in sent] == [TOKEN_A]

    @patch("src.notifications.dispatcher.get_settings")
    def test_batches_respect_batch_size(self, mock_settings, gateway):
        mock_settings.return_value = _settings(push_batch_size=2)
        dispatcher = PushDispatcher(gateway)

        tickets = dispatcher.send_to_tokens([TOKEN_A, TOKEN_B, TOKEN_C], "t", "b")

        assert len(tickets) == 3
        sizes = [len(call.args[0]) for call in gateway.send_batch.call_args_list]
        assert sizes == [2, 1]

    @patch("src.notifications.dispatcher.get_settings")
    def test_failed_batch_does_not_stop_others(self, mock_settings, gateway):
        mock_settings.return_value = _settings(push_batch_size=1)
        gateway.send_batch.side_effect = [
            [PushTicket(status="ok", id="r1")],
            PushGatewayError("timeout", retryable=True),
            [PushTicket(status="ok", id="r3")],
        ]
        dispatcher = PushDispatcher(gateway)

        tickets = dispatcher.send_to_tokens([TOKEN_A, TOKEN_B, TOKEN_C], "t", "b")

        assert [t.id for t in tickets] == ["r1", "r3"]
        assert gateway.send_batch.call_count == 3

    def test_error_tickets_are_returned(self, gateway):
        gateway.send_batch.side_effect = None
        gateway.send_batch.return_value = [
            PushTicket(status="error", details={"error": "DeviceNotRegistered"})
        ]
        dispatcher = PushDispatcher(gateway)

        tickets = dispatcher.send_to_device(TOKEN_A, "t", "b")

        assert len(tickets) == 1
        assert tickets[0].error == "DeviceNotRegistered"

    def test_send_to_device_invalid_token(self, gateway):
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.send_to_device("bad", "t", "b") == []
        gateway.send_batch.assert_not_called()


class TestFetchReceipts:
    def test_fetch_receipts(self, gateway):
        gateway.fetch_receipt_batch.return_value = [PushReceipt(id="r1", status="ok")]
        dispatcher = PushDispatcher(gateway)

        receipts = dispatcher.fetch_receipts(
            [PushTicket(status="ok", id="r1"), PushTicket(status="error")]
        )

        assert [r.id for r in receipts] == ["r1"]
        gateway.fetch_receipt_batch.assert_called_once_with(["r1"])

    def test_no_receipt_ids(self, gateway):
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.fetch_receipts([PushTicket(status="error")]) == []
        gateway.fetch_receipt_batch.assert_not_called()

    @patch("src.notifications.dispatcher.get_settings")
    def test_failed_receipt_batch_is_skipped(self, mock_settings, gateway):
        mock_settings.return_value = _settings(receipt_batch_size=1)
        gateway.fetch_receipt_batch.side_effect = [
            PushGatewayError("boom"),
            [PushReceipt(id="r2", status="ok")],
        ]
        dispatcher = PushDispatcher(gateway)

        receipts = dispatcher.fetch_receipts(
            [PushTicket(status="ok", id="r1"), PushTicket(status="ok", id="r2")]
        )

        assert [r.id for r in receipts] == ["r2"]

    def test_unavailable_gateway(self, gateway):
        gateway.probe.side_effect = PushGatewayError("down")
        dispatcher = PushDispatcher(gateway)
        assert dispatcher.fetch_receipts([PushTicket(status="ok", id="r1")]) == []
        gateway.fetch_receipt_batch.assert_not_called()


class TestMalformedGatewayResponses:
    @patch("src.notifications.dispatcher.get_settings")
    def test_malformed_batch_does_not_stop_others(self, mock_settings):
        mock_settings.return_value = _settings(push_batch_size=1)
        client = ExpoPushClient(access_token="", max_retries=1, retry_delay=0)
        responses = [
            MagicMock(status_code=200, json=lambda: {"data": {}}),
            MagicMock(status_code=200, json=lambda: {"data": ["garbage"]}),
            MagicMock(status_code=200, json=lambda: {"data": [{"status": "ok", "id": "r2"}]}),
        ]
        with patch.object(client.client, "post", side_effect=responses) as mock_post:
            dispatcher = PushDispatcher(client)
            tickets = dispatcher.send_to_tokens([TOKEN_A, TOKEN_B], "t", "b")

        assert [t.id for t in tickets] == ["r2"]
        assert mock_post.call_count == 3

    @patch("src.notifications.dispatcher.get_settings")
    def test_malformed_receipt_batch_does_not_stop_others(self, mock_settings):
        mock_settings.return_value = _settings(receipt_batch_size=1)
        client = ExpoPushClient(access_token="", max_retries=1, retry_delay=0)
        responses = [
            MagicMock(status_code=200, json=lambda: {"data": {}}),
            MagicMock(status_code=200, json=lambda: {"data": {"r1": "garbage"}}),
            MagicMock(status_code=200, json=lambda: {"data": {"r2": {"status": "ok"}}}),
        ]
        with patch.object(client.client, "post", side_effect=responses):
            dispatcher = PushDispatcher(client)
            receipts = dispatcher.fetch_receipts(
                [PushTicket(status="ok", id="r1"), PushTicket(status="ok", id="r2")]
            )

        assert [r.id for r in receipts] == ["r2"]
