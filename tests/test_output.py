"""Tests for the output formatting system.

Covers:
- date and file size cell formatting
- per-resource table rows
- JSON, table and CSV rendering of API envelopes
- NO_COLOR / TERM=dumb colour disabling
- stdout vs stderr discipline, quiet and verbose modes
- global instance management
"""

from __future__ import annotations

import json

import pytest

from xcodecloud import output as output_module
from xcodecloud.models import (
    APIListResponse,
    CiArtifact,
    CiBuildRun,
    CiIssue,
    CiProduct,
    CiTestResult,
)
from xcodecloud.output import (
    NO_RESULTS,
    OutputFormat,
    OutputManager,
    _should_disable_color,
    format_date,
    format_file_size,
    get_output,
    reset_output,
    set_output,
    table_rows,
)

PRODUCTS = APIListResponse[CiProduct].model_validate(
    {
        "data": [
            {
                "type": "ciProducts",
                "id": "prod-1",
                "attributes": {
                    "name": "My App",
                    "productType": "APP",
                    "createdDate": "2024-01-15T10:30:00.000+00:00",
                },
            },
            {"type": "ciProducts", "id": "prod-2", "attributes": {"name": "Widget, Pro"}},
        ],
        "links": {"self": "https://api.appstoreconnect.apple.com/v1/ciProducts"},
    }
)


def _plain(fmt: OutputFormat = OutputFormat.JSON, **kwargs) -> OutputManager:
    return OutputManager(format=fmt, no_color=True, **kwargs)


# ------------------------------------------------------------------ #
# Cell formatting
# ------------------------------------------------------------------ #


class TestFormatDate:
    def test_iso_with_offset(self) -> None:
        assert format_date("2024-01-15T10:30:00.000+00:00") == "2024-01-15 10:30"

    def test_zulu(self) -> None:
        assert format_date("2024-01-15T10:30:00Z") == "2024-01-15 10:30"

    def test_none(self) -> None:
        assert format_date(None) == "-"

    def test_unparseable_unchanged(self) -> None:
        assert format_date("yesterday") == "yesterday"


class TestFormatFileSize:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (None, "-"),
            (0, "0 B"),
            (512, "512 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
            (2048 * 1024**3, "2048.0 GB"),
        ],
    )
    def test_sizes(self, size, expected) -> None:
        assert format_file_size(size) == expected


class TestTableRows:
    def test_products(self) -> None:
        headers, rows = table_rows(CiProduct, PRODUCTS.data)
        assert headers == ["ID", "NAME", "TYPE", "CREATED"]
        assert rows[0] == ["prod-1", "My App", "APP", "2024-01-15 10:30"]
        assert rows[1] == ["prod-2", "Widget, Pro", "-", "-"]

    def test_build_run_short_sha(self) -> None:
        run = CiBuildRun.model_validate(
            {
                "type": "ciBuildRuns",
                "id": "run-1",
                "attributes": {
                    "number": 12,
                    "completionStatus": "FAILED",
                    "sourceCommit": {"commitSha": "0123456789abcdef"},
                },
            }
        )
        _, rows = table_rows(CiBuildRun, [run])
        assert rows[0] == ["run-1", "12", "FAILED", "-", "-", "0123456"]

    def test_artifact_size(self) -> None:
        artifact = CiArtifact.model_validate(
            {
                "type": "ciArtifacts",
                "id": "art-1",
                "attributes": {"fileName": "logs.zip", "fileType": "LOG_BUNDLE", "fileSize": 2048},
            }
        )
        _, rows = table_rows(CiArtifact, [artifact])
        assert rows[0] == ["art-1", "logs.zip", "LOG_BUNDLE", "2.0 KB"]

    def test_issue_file_source(self) -> None:
        issue = CiIssue.model_validate(
            {
                "type": "ciIssues",
                "id": "i1",
                "attributes": {
                    "issueType": "ERROR",
                    "message": "Missing semicolon",
                    "fileSource": {"path": "App.swift", "lineNumber": 42},
                },
            }
        )
        _, rows = table_rows(CiIssue, [issue])
        assert rows[0] == ["ERROR", "-", "App.swift", "42", "Missing semicolon"]

    def test_test_result_without_attributes(self) -> None:
        result = CiTestResult.model_validate({"type": "ciTestResults", "id": "t1"})
        _, rows = table_rows(CiTestResult, [result])
        assert rows[0] == ["-", "-", "-", "-"]


# ------------------------------------------------------------------ #
# Rendering
# ------------------------------------------------------------------ #


class TestRender:
    def test_json_prints_whole_envelope(self, capsys) -> None:
        _plain().render(PRODUCTS, CiProduct, PRODUCTS.data)
        out = capsys.readouterr().out
        data = json.loads(out)
        assert data["data"][0]["attributes"]["productType"] == "APP"
        assert data["links"]["self"].endswith("/v1/ciProducts")
        assert "included" not in data
        assert out.count("\n") == 1

    def test_pretty_json(self, capsys) -> None:
        _plain(pretty=True).print_json({"b": 1, "a": [1, 2]})
        out = capsys.readouterr().out
        assert out.startswith('{\n  "a": [')

    def test_table_plain(self, capsys) -> None:
        _plain(OutputFormat.TABLE).render(PRODUCTS, CiProduct, PRODUCTS.data)
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["ID", "NAME", "TYPE", "CREATED"]
        assert set(lines[1].replace(" ", "")) == {"-"}
        assert lines[2].startswith("prod-1  My App")
        assert len(lines) == 4

    def test_table_rich(self, capsys) -> None:
        OutputManager(format=OutputFormat.TABLE).render(PRODUCTS, CiProduct, PRODUCTS.data)
        out = capsys.readouterr().out
        assert "prod-1" in out
        assert "NAME" in out

    def test_table_empty(self, capsys) -> None:
        _plain(OutputFormat.TABLE).render(PRODUCTS, CiProduct, [])
        assert capsys.readouterr().out.strip() == NO_RESULTS

    def test_csv(self, capsys) -> None:
        _plain(OutputFormat.CSV).render(PRODUCTS, CiProduct, PRODUCTS.data)
        assert capsys.readouterr().out == (
            "ID,NAME,TYPE,CREATED\n"
            "prod-1,My App,APP,2024-01-15 10:30\n"
            'prod-2,"Widget, Pro",-,-\n'
        )

    def test_csv_empty_prints_nothing(self, capsys) -> None:
        _plain(OutputFormat.CSV).render(PRODUCTS, CiProduct, [])
        assert capsys.readouterr().out == ""


# ------------------------------------------------------------------ #
# Colour control
# ------------------------------------------------------------------ #


class TestColor:
    def test_no_color_env(self, monkeypatch) -> None:
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color()

    def test_term_dumb(self, monkeypatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color()

    def test_color_enabled(self, monkeypatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert not _should_disable_color()


# ------------------------------------------------------------------ #
# Diagnostics
# ------------------------------------------------------------------ #


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capsys) -> None:
        out = _plain()
        out.info("info msg")
        out.success("done")
        out.warning("careful")
        out.error("broken")
        out.suggest("try this")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == [
            "info msg",
            "done",
            "Warning: careful",
            "Error: broken",
            "→ try this",
        ]

    def test_quiet_keeps_warnings_and_errors(self, capsys) -> None:
        out = _plain(quiet=True)
        out.info("info msg")
        out.success("done")
        out.suggest("try this")
        out.warning("careful")
        out.error("broken")
        assert capsys.readouterr().err.splitlines() == ["Warning: careful", "Error: broken"]

    def test_debug_only_when_verbose(self, capsys) -> None:
        _plain().debug("hidden")
        _plain(verbose=True).debug("shown")
        assert capsys.readouterr().err.splitlines() == ["[debug] shown"]

    def test_rich_error_escapes_markup(self, capsys) -> None:
        OutputManager().error("bad [value]")
        assert "bad [value]" in capsys.readouterr().err


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default(self) -> None:
        reset_output()
        assert get_output().format == OutputFormat.JSON

    def test_set_and_reset(self) -> None:
        manager = _plain(OutputFormat.CSV)
        set_output(manager)
        assert get_output() is manager
        reset_output()
        assert get_output() is not manager

    def test_module_helpers_delegate(self, capsys) -> None:
        set_output(_plain())
        output_module.error("via helper")
        output_module.info("also")
        assert capsys.readouterr().err.splitlines() == ["Error: via helper", "also"]
