"""Tests for the calendar_recurrence command-line entry point."""

import json

import pytest

from calendar_recurrence.__main__ import _create_parser, _rule_text, main

pytestmark = pytest.mark.unit

MONTHLY_RULE = "DTSTART:20250131T100000Z\\nRRULE:FREQ=MONTHLY;COUNT=3"


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every CLI test away from any calendar_recurrence.yaml."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestRuleText:
    @pytest.mark.parametrize(
        "raw",
        [
            "DTSTART:20250106T090000Z\\nRRULE:FREQ=DAILY",
            "DTSTART:20250106T090000Z RRULE:FREQ=DAILY",
            "DTSTART:20250106T090000Z\nRRULE:FREQ=DAILY",
        ],
    )
    def test_accepts_shell_friendly_separators(self, raw):
        assert _rule_text(raw) == "DTSTART:20250106T090000Z\nRRULE:FREQ=DAILY"


class TestParser:
    def test_expand_requires_window_start(self):
        parser = _create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["expand", MONTHLY_RULE])

    def test_rejects_bad_datetime(self):
        parser = _create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["expand", MONTHLY_RULE, "--from", "next tuesday"])


class TestMain:
    """Tests for main()."""

    def test_describe(self, capsys):
        exit_code = main(["describe", "DTSTART:20250106T090000Z\\nRRULE:FREQ=WEEKLY;BYDAY=FR,MO,WE"])
        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "every week on Monday, Wednesday, Friday"

    def test_decode_prints_json(self, capsys):
        assert main(["decode", MONTHLY_RULE]) == 0
        decoded = json.loads(capsys.readouterr().out)
        assert decoded["frequency"] == "monthly"
        assert decoded["interval"] == 1
        assert decoded["termination"] == {"kind": "count", "count": 3}
        assert decoded["anchor_start"] == "2025-01-31T10:00:00+00:00"

    def test_expand(self, capsys):
        exit_code = main(
            [
                "expand",
                MONTHLY_RULE,
                "--end",
                "2025-01-31T11:00:00Z",
                "--from",
                "2025-01-01T00:00:00Z",
                "--to",
                "2025-06-01T00:00:00Z",
            ]
        )
        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == [
            "2025-01-31T10:00:00+00:00  2025-01-31T11:00:00+00:00",
            "2025-02-28T10:00:00+00:00  2025-02-28T11:00:00+00:00",
            "2025-03-31T10:00:00+00:00  2025-03-31T11:00:00+00:00",
        ]

    def test_expand_json(self, capsys):
        main(["expand", MONTHLY_RULE, "--from", "2025-01-01T00:00:00Z", "--to", "2025-06-01T00:00:00Z", "--json"])
        occurrences = json.loads(capsys.readouterr().out)
        assert [occ["start"] for occ in occurrences] == [
            "2025-01-31T10:00:00+00:00",
            "2025-02-28T10:00:00+00:00",
            "2025-03-31T10:00:00+00:00",
        ]
        # Without --end each occurrence lasts one hour
        assert occurrences[0]["end"] == "2025-01-31T11:00:00+00:00"

    def test_expand_default_window_from_config(self, capsys, isolated_cwd):
        """Without --to the window spans default_window_days."""
        main(["expand", MONTHLY_RULE, "--from", "2025-01-01T00:00:00Z"])
        assert len(capsys.readouterr().out.splitlines()) == 1

        (isolated_cwd / "calendar_recurrence.yaml").write_text("default_window_days: 100\n", encoding="utf-8")
        main(["expand", MONTHLY_RULE, "--from", "2025-01-01T00:00:00Z"])
        assert len(capsys.readouterr().out.splitlines()) == 3

    def test_explicit_config_path(self, capsys, tmp_path):
        config_path = tmp_path / "custom.json"
        config_path.write_text('{"max_occurrences_per_window": 2}', encoding="utf-8")
        main(
            [
                "--config",
                str(config_path),
                "expand",
                MONTHLY_RULE,
                "--from",
                "2025-01-01T00:00:00Z",
                "--to",
                "2026-01-01T00:00:00Z",
            ]
        )
        assert len(capsys.readouterr().out.splitlines()) == 2

    def test_invalid_rule_exits_with_error(self, capsys):
        exit_code = main(["describe", "DTSTART:20250106T090000Z\\nRRULE:FREQ=MONTHLY;BYSETPOS=-1"])
        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert "Invalid recurrence rule" in captured.err

    def test_legacy_frequency_warning_goes_to_stderr(self, capsys):
        exit_code = main(["describe", "DTSTART:20250106T090000Z\\nRRULE:FREQ=HOURLY;INTERVAL=2"])
        captured = capsys.readouterr()
        assert exit_code == 0
        assert captured.out.strip() == "every 2 days"
        assert "HOURLY" in captured.err
