"""Tests for time utilities"""

from datetime import datetime, timedelta, timezone

import pytest

from docflow.utils.time import ensure_utc, format_iso, hours_between, is_sla_breached, parse_iso

ENTERED = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestSlaBreach:

    def test_exactly_at_sla_is_on_time(self):
        assert is_sla_breached(ENTERED, 24, ENTERED + timedelta(hours=24)) is False

    def test_past_sla_is_breached(self):
        assert is_sla_breached(ENTERED, 24, ENTERED + timedelta(hours=24, seconds=1)) is True

    @pytest.mark.parametrize("entered_at, sla_hours", [(None, 24), (ENTERED, None)])
    def test_missing_inputs_never_breach(self, entered_at, sla_hours):
        assert is_sla_breached(entered_at, sla_hours, ENTERED + timedelta(days=30)) is False

    def test_naive_entry_time_is_treated_as_utc(self):
        naive = datetime(2024, 3, 1, 9, 0)

        assert hours_between(naive, ENTERED + timedelta(hours=2)) == 2


class TestIsoFormatting:

    def test_format_uses_z_suffix(self):
        assert format_iso(ENTERED) == "2024-03-01T09:00:00Z"

    def test_parse_converts_offsets_to_utc(self):
        parsed = parse_iso("2024-03-01T11:00:00+02:00")

        assert parsed == ENTERED
        assert parsed.tzinfo == timezone.utc

    def test_ensure_utc_keeps_aware_values(self):
        assert ensure_utc(ENTERED) is not None
        assert ensure_utc(ENTERED) == ENTERED
