import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_parser import EventSource, parse_row
from errors import InputUnavailableError, MalformedRowError
from message_queue import BoundedQueue
from models import ProcessingStats, TransactionType


def drain(queue: BoundedQueue):
    messages = []
    while (message := queue.consume_message()) is not None:
        messages.append(message)
    return messages


class TestParseRow:
    def test_deposit(self):
        transaction = parse_row(["deposit", " 1", " 2", " 1.5 "])
        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.client_id == 1
        assert transaction.transaction_id == 2
        assert transaction.amount == Decimal("1.5000")

    def test_type_is_case_insensitive(self):
        assert parse_row(["WithDrawal", "1", "2", "1"]).transaction_type == TransactionType.WITHDRAWAL

    def test_dispute_without_amount_column(self):
        transaction = parse_row(["dispute", "1", "2"])
        assert transaction.transaction_type == TransactionType.DISPUTE
        assert transaction.amount is None

    def test_empty_amount_is_none(self):
        assert parse_row(["resolve", "1", "2", ""]).amount is None
        assert parse_row(["deposit", "1", "2", "  "]).amount is None

    def test_amount_rounded_to_four_places(self):
        assert parse_row(["deposit", "1", "2", "1.23456"]).amount == Decimal("1.2346")

    def test_unknown_type(self):
        transaction = parse_row(["refund", "1", "2", "1.0"])
        assert transaction.transaction_type == TransactionType.UNKNOWN

    @pytest.mark.parametrize("fields", [
        ["deposit", "1"],
        ["deposit", "1", "2", "3", "4"],
        ["deposit", "x", "2", "1.0"],
        ["deposit", "-1", "2", "1.0"],
        ["deposit", "65536", "2", "1.0"],
        ["deposit", "1", "4294967296", "1.0"],
        ["deposit", "1", "2.5", "1.0"],
        ["deposit", "1", "2", "abc"],
        ["deposit", "1", "2", "NaN"],
        ["deposit", "1", "2", "Infinity"],
        ["deposit", "1", "2", "1" + "0" * 26],
        ["refund", "1", "x", "1.0"],
    ])
    def test_malformed(self, fields):
        with pytest.raises(MalformedRowError):
            parse_row(fields)

    def test_amount_too_large_to_round(self):
        with pytest.raises(MalformedRowError, match="not a representable decimal"):
            parse_row(["deposit", "1", "9", "1" + "0" * 26])

    def test_id_bounds(self):
        transaction = parse_row(["deposit", "65535", "4294967295", "1"])
        assert transaction.client_id == 65535
        assert transaction.transaction_id == 4294967295


class TestEventSource:
    def test_publishes_in_file_order(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "dispute, 1, 1,",
            "withdrawal, 1, 3, 0.5",
        ]))

        queue = BoundedQueue(capacity=10)
        EventSource(str(csv_file)).publish(queue)

        messages = drain(queue)
        assert [m.transaction_id for m in messages] == [1, 2, 1, 3]
        assert messages[2].transaction_type == TransactionType.DISPUTE

    def test_malformed_rows_dropped_and_counted(self, tmp_path, caplog):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, one, 2, 2.0",
            "deposit, 1, 3, lots",
            "deposit",
            "",
            "mystery, 1, 4, 1.0",
        ]))

        stats = ProcessingStats()
        queue = BoundedQueue(capacity=10)
        EventSource(str(csv_file), stats=stats).publish(queue)

        messages = drain(queue)
        assert [m.transaction_id for m in messages] == [1, 4]
        assert messages[1].transaction_type == TransactionType.UNKNOWN
        assert stats.malformed == 3
        assert "malformed row" in caplog.text

    def test_header_only(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text("type,client,tx,amount\n")

        queue = BoundedQueue(capacity=10)
        EventSource(str(csv_file)).publish(queue)
        assert drain(queue) == []

    def test_empty_file_closes_queue(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text("")

        queue = BoundedQueue(capacity=10)
        EventSource(str(csv_file)).publish(queue)
        assert drain(queue) == []

    def test_missing_file(self, tmp_path):
        source = EventSource(str(tmp_path / "missing.csv"))
        with pytest.raises(InputUnavailableError):
            source.open()

    def test_unreadable_file_still_closes_queue(self, tmp_path):
        csv_file = tmp_path / "test.bin"
        csv_file.write_bytes(b"type,client,tx,amount\ndeposit,1,1,\xff\xfe\n")

        queue = BoundedQueue(capacity=10)
        with pytest.raises(InputUnavailableError):
            EventSource(str(csv_file)).publish(queue)
        with pytest.raises(RuntimeError):
            queue.publish_message(parse_row(["deposit", "1", "2", "1"]))
