"""
Test Suite for the HTTP API and CLI
===================================
Flask routes via the test client, click commands via CliRunner.
"""

from __future__ import annotations

import json
from io import BytesIO

import pytest
from click.testing import CliRunner
from openpyxl import load_workbook

from conftest import BSGE_HEADER, build_workbook, bsge_row
from exambank import database as db
from exambank.cli import cli
from exambank.server import create_app


@pytest.fixture
def client(db_path):
    app = create_app({"DB_PATH": db_path, "TESTING": True})
    return app.test_client()


def _upload(data: bytes, filename: str, **fields) -> dict:
    return {"file": (BytesIO(data), filename), **fields}


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP API TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"
        assert resp.get_json()["questions"] == 0


class TestTemplateRoute:
    def test_download(self, client):
        resp = client.get("/api/questions/template?course=bsge")
        assert resp.status_code == 200
        assert "questions_import_template_bsge.xlsx" in resp.headers["Content-Disposition"]

        workbook = load_workbook(BytesIO(resp.data))
        header = [c.value for c in workbook["Questions"][1]]
        assert "area" not in header

    def test_unknown_course(self, client):
        resp = client.get("/api/questions/template?course=nope")
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "unsupported_course"


class TestImportRoute:
    def test_import_then_duplicates(self, client, db_path):
        data = build_workbook(BSGE_HEADER, [bsge_row("Q1"), bsge_row("Q2")])

        first = client.post(
            "/api/questions/import",
            data=_upload(data, "bank.xlsx", course="BSGE"),
            content_type="multipart/form-data",
        )
        assert first.status_code == 200
        body = first.get_json()
        assert body["message"] == "Import complete. 2 imported, 0 skipped."
        assert body["result"]["imported"] == 2

        second = client.post(
            "/api/questions/import",
            data=_upload(data, "bank.xlsx", course="BSGE"),
            content_type="multipart/form-data",
        )
        result = second.get_json()["result"]
        assert result["imported"] == 0
        assert [d["row"] for d in result["duplicatesInDb"]] == [2, 3]
        assert db.count_questions(db_path=db_path) == 2

    def test_missing_file(self, client):
        resp = client.post("/api/questions/import", data={"course": "BSGE"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "No file provided"

    def test_wrong_extension(self, client):
        resp = client.post(
            "/api/questions/import",
            data=_upload(b"a,b,c", "bank.csv", course="BSGE"),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "unsupported_file"

    def test_missing_columns(self, client):
        data = build_workbook(["question_text"], [["Q"]])
        resp = client.post(
            "/api/questions/import",
            data=_upload(data, "bank.xlsx", course="BSGE"),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "invalid_spreadsheet"


class TestPdfRoutes:
    def test_preview(self, client, sample_pdf, db_path):
        resp = client.post(
            "/api/questions/import-pdf",
            data=_upload(sample_pdf, "exam.pdf"),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["totalFound"] == 2
        assert body["withCorrectAnswers"] == 1
        assert body["questions"][0]["correctAnswer"] == "A"
        assert db.count_questions(db_path=db_path) == 0

    def test_preview_rejects_corrupt_pdf(self, client):
        resp = client.post(
            "/api/questions/import-pdf",
            data=_upload(b"", "exam.pdf"),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "corrupt_file"

    def test_preview_then_confirm(self, client, sample_pdf, db_path):
        preview = client.post(
            "/api/questions/import-pdf",
            data=_upload(sample_pdf, "exam.pdf"),
            content_type="multipart/form-data",
        ).get_json()

        questions = preview["questions"]
        questions[1]["correctAnswer"] = "A"

        resp = client.put("/api/questions/import-pdf", json={
            "questions": questions,
            "course": "BSGE",
            "defaultSubject": "Hydrology",
            "defaultDifficulty": "Medium",
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Successfully imported 2 questions"
        assert body["result"]["imported"] == 2
        assert db.count_questions("BSGE", db_path=db_path) == 2

    def test_confirm_requires_questions(self, client):
        resp = client.put("/api/questions/import-pdf", json={"course": "BSGE"})
        assert resp.status_code == 400

    def test_confirm_invalid_payload(self, client):
        resp = client.put("/api/questions/import-pdf", json={
            "questions": [{"questionText": "Q", "options": "not a mapping"}],
            "course": "BSGE",
            "defaultSubject": "S",
            "defaultDifficulty": "Easy",
        })
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "invalid_payload"


# ═══════════════════════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    def test_init_db(self, db_path):
        result = CliRunner().invoke(cli, ["init-db", "--db", db_path])
        assert result.exit_code == 0
        assert db.count_questions(db_path=db_path) == 0

    def test_template_then_import(self, tmp_path, db_path):
        runner = CliRunner()
        out = tmp_path / "template.xlsx"

        result = runner.invoke(cli, ["template", str(out), "--course", "BSABEN"])
        assert result.exit_code == 0
        assert out.exists()

        result = runner.invoke(cli, [
            "import", str(out), "--course", "bsaben", "--db", db_path, "--json-output",
        ])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["imported"] == 1
        assert db.count_questions("BSABEN", db_path=db_path) == 1

    def test_preview_json(self, tmp_path, sample_pdf):
        pdf_path = tmp_path / "exam.pdf"
        pdf_path.write_bytes(sample_pdf)

        result = CliRunner().invoke(cli, ["preview", str(pdf_path), "--json-output"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["totalFound"] == 2
        assert payload["categories"] == ["Hydraulics"]

    def test_confirm_from_preview_file(self, tmp_path, sample_pdf, db_path):
        runner = CliRunner()
        pdf_path = tmp_path / "exam.pdf"
        pdf_path.write_bytes(sample_pdf)
        preview = json.loads(
            runner.invoke(cli, ["preview", str(pdf_path), "--json-output"]).output
        )
        preview_path = tmp_path / "reviewed.json"
        preview_path.write_text(json.dumps(preview), encoding="utf-8")

        result = runner.invoke(cli, [
            "confirm", str(preview_path),
            "--course", "BSGE",
            "--subject", "Hydrology",
            "--difficulty", "Easy",
            "--db", db_path,
            "--json-output",
        ])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["imported"] == 1
        assert payload["errors"][0]["reason"] == "Row 2: correct_answer is required"

    def test_rejection_exits_nonzero(self, tmp_path, db_path):
        bad = tmp_path / "bank.xlsx"
        bad.write_bytes(b"not a workbook")
        result = CliRunner().invoke(cli, ["import", str(bad), "--course", "BSGE", "--db", db_path])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_import_table_output(self, tmp_path, db_path):
        path = tmp_path / "bank.xlsx"
        path.write_bytes(build_workbook(BSGE_HEADER, [bsge_row("Q1"), bsge_row("Q1")]))
        result = CliRunner().invoke(cli, ["import", str(path), "--course", "BSGE", "--db", db_path])
        assert result.exit_code == 0, result.output
        assert "Imported" in result.output
        assert "Duplicates" in result.output

    def test_bracketed_question_text_is_printed_verbatim(self, tmp_path, db_path):
        path = tmp_path / "bank.xlsx"
        text = "Box [x] [/b]"
        path.write_bytes(build_workbook(BSGE_HEADER, [bsge_row(text), bsge_row(text)]))
        result = CliRunner().invoke(cli, ["import", str(path), "--course", "BSGE", "--db", db_path])
        assert result.exit_code == 0, result.output
        assert "Box [x] [/b]" in result.output

    def test_preview_does_not_create_database(self, tmp_path, sample_pdf, monkeypatch):
        default_db = tmp_path / "default.sqlite"
        monkeypatch.setenv("EXAMBANK_DB_PATH", str(default_db))
        pdf_path = tmp_path / "exam.pdf"
        pdf_path.write_bytes(sample_pdf)

        result = CliRunner().invoke(cli, ["preview", str(pdf_path)])
        assert result.exit_code == 0, result.output
        assert "Hydraulics" in result.output
        assert not default_db.exists()

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
