"""
HTTP Microservice
=================
Flask-based HTTP API for the question importer.

Endpoints:
    GET    /api/health                → Health check
    GET    /api/questions/template    → Download the .xlsx import template
    POST   /api/questions/import      → Import a spreadsheet (commit mode)
    POST   /api/questions/import-pdf  → Parse a PDF into a preview
    PUT    /api/questions/import-pdf  → Commit reviewed PDF questions
"""

from __future__ import annotations

import logging
from io import BytesIO

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
from pydantic import ValidationError

from . import __version__
from . import database as db
from .engine import ImporterConfig, ImportOrchestrator
from .errors import CommitError, InputRejectedError
from .models import ImportResult, get_course_variant
from .spreadsheet import build_template

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

TEMPLATE_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault("DB_PATH", db.get_db_path())
    # Slightly above the PDF limit; exact limits are enforced by the importer
    app.config.setdefault("MAX_CONTENT_LENGTH", 11 * 1024 * 1024)
    app.config.setdefault("LOG_LEVEL", "INFO")

    db.init_db(app.config["DB_PATH"])
    return app


def _orchestrator() -> ImportOrchestrator:
    store = db.QuestionStore(app.config.get("DB_PATH"))
    config = ImporterConfig(log_level=app.config.get("LOG_LEVEL", "INFO"))
    return ImportOrchestrator(store, config)


def _result_response(result: ImportResult, message: str):
    return jsonify({
        "message": message,
        "result": result.model_dump(by_alias=True),
    })


# ─── Error Handlers ───────────────────────────────────────────────────────────


@app.errorhandler(InputRejectedError)
def handle_rejected(e: InputRejectedError):
    logger.warning(f"Rejected {request.method} {request.path}: {e}")
    return jsonify({"error": str(e), "category": e.category}), 400


@app.errorhandler(ValidationError)
def handle_invalid_payload(e: ValidationError):
    return jsonify({
        "error": "Invalid question payload",
        "details": [
            {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
        ],
        "category": "invalid_payload",
    }), 400


@app.errorhandler(CommitError)
def handle_commit_error(e: CommitError):
    logger.error(f"Commit failed for {request.method} {request.path}: {e}")
    return jsonify({
        "error": "Failed to save questions. Nothing was imported.",
        "details": str(e),
        "category": e.category,
    }), 500


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "exambank-ingest",
        "version": __version__,
        "questions": db.count_questions(db_path=app.config.get("DB_PATH")),
    })


# ─── Template Download ────────────────────────────────────────────────────────


@app.route("/api/questions/template", methods=["GET"])
def download_template():
    """Serve the import workbook for the requested course."""
    course = get_course_variant(request.args.get("course", "BSABEN"))
    content = build_template(course)
    return send_file(
        BytesIO(content),
        mimetype=TEMPLATE_MIMETYPE,
        as_attachment=True,
        download_name=f"questions_import_template_{course.code.lower()}.xlsx",
    )


# ─── Spreadsheet Import ──────────────────────────────────────────────────────


@app.route("/api/questions/import", methods=["POST"])
def import_spreadsheet():
    """
    Import questions from an uploaded workbook.

    Multipart form fields:
        file        The .xlsx workbook
        course      Course code (BSABEN, BSGE)
        created_by  Optional uploader id
    """
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400
    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "No file selected"}), 400

    result = _orchestrator().import_spreadsheet(
        file.read(),
        file.filename,
        course=request.form.get("course", ""),
        created_by=request.form.get("created_by") or None,
    )
    return _result_response(
        result,
        f"Import complete. {result.imported} imported, {result.skipped} skipped.",
    )


# ─── PDF Import ──────────────────────────────────────────────────────────────


@app.route("/api/questions/import-pdf", methods=["POST"])
def preview_pdf():
    """Parse an uploaded PDF and return the questions for review."""
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400
    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "No file selected"}), 400

    preview = _orchestrator().preview_pdf(file.read(), file.filename)
    return jsonify({"success": True, **preview.model_dump(by_alias=True)})


@app.route("/api/questions/import-pdf", methods=["PUT"])
def confirm_pdf():
    """
    Commit reviewed PDF questions.

    JSON body:
        {
            "questions": [{questionText, options, correctAnswer, ...}],
            "course": "BSGE",
            "defaultSubject": "Surveying",
            "defaultDifficulty": "Medium",
            "defaultArea": null,
            "createdBy": null
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "No data provided"}), 400

    questions = data.get("questions")
    if not isinstance(questions, list) or not questions:
        return jsonify({"error": "No questions provided"}), 400

    result = _orchestrator().confirm_pdf_import(
        questions,
        course=data.get("course", ""),
        default_subject=data.get("defaultSubject", ""),
        default_difficulty=data.get("defaultDifficulty", ""),
        default_area=data.get("defaultArea"),
        created_by=data.get("createdBy"),
    )
    plural = "s" if result.imported != 1 else ""
    return _result_response(
        result, f"Successfully imported {result.imported} question{plural}"
    )


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the microservice server."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
