"""Lead note rendering for processed calls.

format_note() is a pure function of the CallRecord: the section order and the
"—" placeholder for missing values are fixed, so equal records always render
to identical text. Sections, in order:

    company (bold, if any) / name / phone / duration / start time / interest /
    recording / agreements + agreement time / region (if any) / tags /
    client facts (if any) / dialogue (if any)
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from src.callsync.calls.schemas import CallRecord

PLACEHOLDER = "—"
DEFAULT_TZ_LABEL = "МСК"
DEFAULT_TZ_OFFSET_HOURS = 3

_LOCAL_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")

ROLE_LABELS = {"user": "Клиент"}
DEFAULT_ROLE_LABEL = "Ассистент"


def format_duration(ms: float | None) -> str:
    """Render milliseconds as MM:SS (whole seconds, floored)."""
    if not ms:
        return PLACEHOLDER
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def format_datetime(
    value: Any,
    tz_label: str = DEFAULT_TZ_LABEL,
    tz_offset_hours: int = DEFAULT_TZ_OFFSET_HOURS,
) -> str:
    """Render a timestamp as `DD.MM.YYYY HH:MM по <label>`.

    `YYYY-MM-DD HH:MM:SS` strings are already local time. Timestamps with an
    explicit offset (including `Z`) are converted into the local offset.
    Naive ISO timestamps are taken as local. Anything unparseable is
    returned verbatim.
    """
    if value is None or value == "":
        return PLACEHOLDER
    if not isinstance(value, str):
        return str(value)

    text = value.strip()
    local_tz = timezone(timedelta(hours=tz_offset_hours))

    if _LOCAL_DATETIME.match(text):
        try:
            moment = datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return value
    else:
        iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
        try:
            moment = datetime.fromisoformat(iso)
        except ValueError:
            return value
        if moment.tzinfo is not None:
            moment = moment.astimezone(local_tz)

    return f"{moment:%d.%m.%Y %H:%M} по {tz_label}"


def _interest(record: CallRecord) -> str:
    for rate in (record.contact_rate, record.cval_rate):
        if rate is not None and rate != "":
            return f"{rate}%"
    return PLACEHOLDER


def format_note(
    record: CallRecord,
    tz_label: str = DEFAULT_TZ_LABEL,
    tz_offset_hours: int = DEFAULT_TZ_OFFSET_HOURS,
) -> str:
    """Build the note text attached to the lead created for a call."""
    parts: list[str] = []

    if record.company:
        parts.append(f"<b>Компания: {record.company}</b>")
        parts.append("")

    parts.append(f"Имя: {record.name or PLACEHOLDER}")
    parts.append(f"Телефон: {'+' + record.phone if record.phone else PLACEHOLDER}")

    parts.append(f"Длительность звонка: {format_duration(record.call_duration_ms)}")
    parts.append(
        f"Время начала звонка: {format_datetime(record.call_started_at, tz_label, tz_offset_hours)}"
    )
    parts.append(f"Заинтересованность: {_interest(record)}")
    parts.append(f"Запись звонка: {record.record_url or PLACEHOLDER}")

    parts.append("")
    parts.append(f"Договоренности: {record.agreements or PLACEHOLDER}")
    parts.append(
        "Время договоренности: "
        f"{format_datetime(record.agreements_time_local, tz_label, tz_offset_hours)}"
    )

    if record.region:
        parts.append(f"Возможный регион: {record.region}")

    parts.append(f"Теги: {', '.join(record.tags) if record.tags else PLACEHOLDER}")

    if record.client_facts:
        parts.append("")
        parts.append("О клиенте:")
        parts.append(record.client_facts)

    if record.chat_history:
        parts.append("")
        parts.append("Диалог:")
        for message in record.chat_history:
            role = ROLE_LABELS.get(message.role, DEFAULT_ROLE_LABEL)
            parts.append(f"{role}: {message.content}")

    return "\n".join(parts)
