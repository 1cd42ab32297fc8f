"""Tests for the vault-backed stores — vault engine, daily logs, reports."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

UTC = timezone.utc


def _millis(iso: str) -> int:
    return int(datetime.fromisoformat(iso).timestamp() * 1000)


def _report(report_id: str = "r1", content: str = "## Cues\n- a", start=date(2026, 3, 2), end=date(2026, 3, 8), created_at: int = 1):
    from lifestream.core.models import Report, ReportType

    return Report(
        id=report_id, type=ReportType.WEEKLY, period_start=start, period_end=end,
        content=content, created_at=created_at,
    )


class TestFrontmatter:
    def test_round_trip(self):
        from lifestream.core.frontmatter import build_frontmatter, parse_frontmatter

        doc = build_frontmatter({"id": "abc", "type": "DAILY"}, "## Cues\n---\nbody")
        fields, body = parse_frontmatter(doc)

        assert fields == {"id": "abc", "type": "DAILY"}
        assert body == "## Cues\n---\nbody"

    def test_no_frontmatter(self):
        from lifestream.core.frontmatter import parse_frontmatter

        assert parse_frontmatter("plain") == ({}, "plain")


class TestVaultEngine:
    def test_write_read_list_delete(self, tmp_path):
        from lifestream.core.vault import VaultEngine

        engine = VaultEngine(tmp_path)
        engine.write_resource("hello", "u/reports", "a.md")

        assert engine.read_resource("u/reports/a.md") == "hello"
        assert engine.list_resources("u/reports") == ["a.md"]
        assert engine.delete_resource("u/reports/a.md") is True
        assert engine.read_resource("u/reports/a.md") is None
        assert engine.delete_resource("u/reports/a.md") is False

    def test_move(self, tmp_path):
        from lifestream.core.vault import VaultEngine

        engine = VaultEngine(tmp_path)
        engine.write_resource("x", "u/todos/active", "t.md")

        assert engine.move_resource("u/todos/active/t.md", "u/todos/done/t.md") is True
        assert engine.list_resources("u/todos/done") == ["t.md"]
        assert engine.move_resource("u/todos/active/t.md", "u/todos/done/t.md") is False

    def test_path_escape_rejected(self, tmp_path):
        from lifestream.core.vault import VaultEngine

        engine = VaultEngine(tmp_path / "vault")
        with pytest.raises(ValueError):
            engine.read_resource("../outside.md")

    def test_user_dir_validation(self):
        from lifestream.core.errors import ValidationError
        from lifestream.core.vault import user_dir

        assert user_dir("alice", "logs") == "alice/logs"
        with pytest.raises(ValidationError):
            user_dir("../etc")
        with pytest.raises(ValidationError):
            user_dir("..")

    def test_check_id(self):
        from lifestream.core.errors import ValidationError
        from lifestream.core.vault import check_id

        assert check_id("0f3a9c12", "todo id") == "0f3a9c12"
        for bad in ("", "a/b", "../../x", "abc\ntype: YEARLY", "x" * 65, None):
            with pytest.raises(ValidationError):
                check_id(bad)


class TestDailyLogStore:
    def test_append_and_list(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        store = DailyLogStore(VaultEngine(tmp_path), tz=UTC)
        second = store.append_log("u", "afternoon", ["work"], timestamp=_millis("2026-03-05T15:00:00+00:00"))
        first = store.append_log("u", "  morning  ", timestamp=_millis("2026-03-05T08:00:00+00:00"))
        store.append_log("u", "next day", timestamp=_millis("2026-03-06T08:00:00+00:00"))

        day = store.list_logs("u", date(2026, 3, 5), date(2026, 3, 5))

        assert [e.id for e in day] == [first.id, second.id]
        assert day[0].content == "morning"
        assert day[1].tags == ("work",)
        assert len(store.list_logs("u", date(2026, 3, 1), date(2026, 3, 31))) == 3
        assert (tmp_path / "u" / "logs" / "2026-03-05.jsonl").is_file()

    def test_blank_content_rejected(self, tmp_path):
        from lifestream.core.errors import ValidationError
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        with pytest.raises(ValidationError):
            DailyLogStore(VaultEngine(tmp_path)).append_log("u", "   ")

    def test_malformed_lines_are_skipped(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        engine = VaultEngine(tmp_path)
        store = DailyLogStore(engine, tz=UTC)
        store.append_log("u", "ok", timestamp=_millis("2026-03-05T08:00:00+00:00"))
        engine.append_resource("{broken", "u/logs", "2026-03-05.jsonl")

        assert [e.content for e in store.get_daily_log("u", date(2026, 3, 5))] == ["ok"]

    def test_unicode_content(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        store = DailyLogStore(VaultEngine(tmp_path), tz=UTC)
        store.append_log("u", "写了周报", timestamp=_millis("2026-03-05T08:00:00+00:00"))

        raw = (tmp_path / "u" / "logs" / "2026-03-05.jsonl").read_text(encoding="utf-8")
        assert "写了周报" in raw

    def test_delete_log(self, tmp_path):
        from lifestream.core.errors import NotFoundError
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        store = DailyLogStore(VaultEngine(tmp_path), tz=UTC)
        a = store.append_log("u", "a", timestamp=_millis("2026-03-05T08:00:00+00:00"))
        b = store.append_log("u", "b", timestamp=_millis("2026-03-05T09:00:00+00:00"))

        store.delete_log("u", a.id)
        assert [e.id for e in store.get_daily_log("u", date(2026, 3, 5))] == [b.id]

        store.delete_log("u", b.id, day=date(2026, 3, 5))
        assert not (tmp_path / "u" / "logs" / "2026-03-05.jsonl").exists()

        with pytest.raises(NotFoundError):
            store.delete_log("u", "missing")

    def test_update_log_keeps_id_and_timestamp(self, tmp_path):
        from lifestream.core.errors import NotFoundError, ValidationError
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.daily_log import DailyLogStore

        store = DailyLogStore(VaultEngine(tmp_path), tz=UTC)
        store.append_log("u", "first", timestamp=_millis("2026-03-04T08:00:00+00:00"))
        entry = store.append_log("u", "draft", ["work"], timestamp=_millis("2026-03-05T08:00:00+00:00"))

        updated = store.update_log("u", entry.id, "  final text ")

        assert updated.id == entry.id
        assert updated.timestamp == entry.timestamp
        assert updated.content == "final text"
        assert updated.tags == ("work",)
        assert store.get_daily_log("u", date(2026, 3, 5)) == [updated]
        assert store.update_log("u", entry.id, "x", tags=[]).tags == ()

        with pytest.raises(ValidationError):
            store.update_log("u", entry.id, " ")
        with pytest.raises(NotFoundError):
            store.update_log("u", "missing", "x")


class TestVaultReportStore:
    def test_upsert_and_find(self, tmp_path):
        from lifestream.core.models import ReportType
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))
        store.upsert("u", _report())

        found = store.find_by_key("u", ReportType.WEEKLY, date(2026, 3, 2), date(2026, 3, 8))
        assert found == _report()
        assert store.get("u", "r1") == _report()
        assert (tmp_path / "u" / "reports" / "WEEKLY_2026-03-02_2026-03-08.md").is_file()

    def test_upsert_keeps_existing_id(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))
        store.upsert("u", _report("r1", "old"))
        stored = store.upsert("u", _report("r2", "new"))

        assert stored.id == "r1"
        assert stored.content == "new"
        assert len(store.list_reports("u")) == 1

    def test_insert_if_absent(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))

        assert store.insert_if_absent("u", _report("r1")) is not None
        assert store.insert_if_absent("u", _report("r2")) is None
        assert store.get("u", "r2") is None

    def test_list_newest_first_with_filter(self, tmp_path):
        from lifestream.core.models import Report, ReportType
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))
        store.upsert("u", _report("old", created_at=1))
        store.upsert("u", _report("new", start=date(2026, 3, 9), end=date(2026, 3, 15), created_at=2))
        store.upsert("u", Report("d", ReportType.DAILY, date(2026, 3, 1), date(2026, 3, 1), "x", 3))

        assert [r.id for r in store.list_reports("u")] == ["d", "new", "old"]
        assert [r.id for r in store.list_reports("u", ReportType.WEEKLY)] == ["new", "old"]

    def test_delete(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))
        store.upsert("u", _report())

        assert store.delete("u", "r1") is True
        assert store.delete("u", "r1") is False
        assert store.list_reports("u") == []

    def test_users_are_isolated(self, tmp_path):
        from lifestream.core.vault import VaultEngine
        from lifestream.modules.report_store import VaultReportStore

        store = VaultReportStore(VaultEngine(tmp_path))
        store.upsert("alice", _report())

        assert store.list_reports("bob") == []
