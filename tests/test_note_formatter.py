"""Unit tests for lead note rendering."""

from __future__ import annotations

import pytest

from src.callsync.calls.normalizer import normalize_payload
from src.callsync.calls.note_formatter import format_datetime, format_duration, format_note
from src.callsync.calls.schemas import CallRecord, ChatMessage


def _record(**overrides) -> CallRecord:
    defaults = {"phone": "79991234567", "raw_phone": "+7 999 123-45-67"}
    defaults.update(overrides)
    return CallRecord(**defaults)


class TestFormatDuration:
    @pytest.mark.parametrize(
        "ms,expected",
        [(125000, "02:05"), (59999, "00:59"), (1000, "00:01"), (6_000_000, "100:00")],
    )
    def test_values(self, ms, expected):
        assert format_duration(ms) == expected

    @pytest.mark.parametrize("ms", [None, 0])
    def test_placeholder(self, ms):
        assert format_duration(ms) == "—"


class TestFormatDatetime:
    def test_utc_shifted_to_local(self):
        assert format_datetime("2024-01-01T10:00:00Z") == "01.01.2024 13:00 по МСК"

    def test_explicit_utc_offset(self):
        assert format_datetime("2024-01-01T22:30:00+00:00") == "02.01.2024 01:30 по МСК"

    def test_other_offset_converted(self):
        assert format_datetime("2024-01-01T15:00:00+05:00") == "01.01.2024 13:00 по МСК"

    def test_local_string_not_shifted(self):
        assert format_datetime("2024-03-08 09:05:00") == "08.03.2024 09:05 по МСК"

    def test_naive_iso_not_shifted(self):
        assert format_datetime("2024-03-08T09:05:00") == "08.03.2024 09:05 по МСК"

    def test_fractional_seconds(self):
        assert format_datetime("2024-01-01T10:00:00.123Z") == "01.01.2024 13:00 по МСК"

    def test_custom_zone(self):
        assert format_datetime("2024-01-01T10:00:00Z", "ЕКБ", 5) == "01.01.2024 15:00 по ЕКБ"

    def test_unparseable_returned_verbatim(self):
        assert format_datetime("tomorrow evening") == "tomorrow evening"

    @pytest.mark.parametrize("value", ["2024-02-30 10:00:00", "2024-13-01 25:00:00"])
    def test_impossible_local_date_returned_verbatim(self, value):
        assert format_datetime(value) == value

    @pytest.mark.parametrize("value", [None, ""])
    def test_placeholder(self, value):
        assert format_datetime(value) == "—"


class TestFormatNote:
    def test_minimal_record_uses_placeholders(self):
        assert format_note(_record()) == "\n".join(
            [
                "Имя: —",
                "Телефон: +79991234567",
                "Длительность звонка: —",
                "Время начала звонка: —",
                "Заинтересованность: —",
                "Запись звонка: —",
                "",
                "Договоренности: —",
                "Время договоренности: —",
                "Теги: —",
            ]
        )

    def test_full_record_section_order(self):
        record = _record(
            name="Ivan",
            company="Acme",
            call_duration_ms=125000,
            call_started_at="2024-01-01T10:00:00Z",
            contact_rate=70,
            record_url="https://rec/1.mp3",
            agreements="Call back",
            agreements_time_local="2024-01-09 11:00:00",
            region="Moscow",
            tags=("hot", "ai"),
            client_facts="Has 12 managers",
            chat_history=(
                ChatMessage(role="assistant", content="Hello"),
                ChatMessage(role="user", content="Hi"),
            ),
        )

        assert format_note(record) == "\n".join(
            [
                "<b>Компания: Acme</b>",
                "",
                "Имя: Ivan",
                "Телефон: +79991234567",
                "Длительность звонка: 02:05",
                "Время начала звонка: 01.01.2024 13:00 по МСК",
                "Заинтересованность: 70%",
                "Запись звонка: https://rec/1.mp3",
                "",
                "Договоренности: Call back",
                "Время договоренности: 09.01.2024 11:00 по МСК",
                "Возможный регион: Moscow",
                "Теги: hot, ai",
                "",
                "О клиенте:",
                "Has 12 managers",
                "",
                "Диалог:",
                "Ассистент: Hello",
                "Клиент: Hi",
            ]
        )

    def test_interest_prefers_contact_rate(self):
        note = format_note(_record(contact_rate=10, cval_rate=90))

        assert "Заинтересованность: 10%" in note

    def test_interest_falls_back_to_cval_rate(self):
        note = format_note(_record(contact_rate="", cval_rate=90))

        assert "Заинтересованность: 90%" in note

    def test_empty_transcript_omitted(self):
        assert "Диалог:" not in format_note(_record(chat_history=()))

    def test_deterministic_for_equal_records(self):
        body = {
            "contact": {"phone": "+7 999 123-45-67", "tags": ["a"]},
            "call": {
                "duration": 61000,
                "startedAt": "2024-01-01T10:00:00Z",
                "callDetails": {"chatHistory": [{"role": "user", "content": "Hi"}]},
            },
        }

        first = format_note(normalize_payload(body))
        second = format_note(normalize_payload(dict(body)))

        assert first == second
        assert first.encode("utf-8") == second.encode("utf-8")
