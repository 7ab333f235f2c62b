"""
SQLite Database Layer
=====================
Persistent question storage used as the commit target of the importer.

The pipeline only needs three operations from storage:
    - insert many (one transaction per batch)
    - find by course, projected to the identity fields
    - count

``questions.identity_key`` carries a UNIQUE index so that a concurrent
import cannot silently store the same question twice.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from .errors import CommitError
from .models import Question

logger = logging.getLogger(__name__)

# Default database path: project_root/database.sqlite
_DEFAULT_DB_PATH = str(Path(__file__).parent.parent / "database.sqlite")


def get_db_path() -> str:
    """Return the configured database path."""
    return os.environ.get("EXAMBANK_DB_PATH", _DEFAULT_DB_PATH)


@contextmanager
def get_connection(db_path: str = None):
    """
    Context manager for database connections.
    Ensures proper commit/rollback and connection cleanup.
    """
    db_path = db_path or get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = None):
    """
    Initialize the database schema.
    Safe to call multiple times; uses IF NOT EXISTS.
    """
    db_path = db_path or get_db_path()
    logger.info(f"Initializing database at: {db_path}")

    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS questions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                question_text TEXT NOT NULL,
                option_a TEXT NOT NULL,
                option_b TEXT NOT NULL,
                option_c TEXT,
                option_d TEXT,
                correct_answer TEXT NOT NULL,
                difficulty TEXT NOT NULL,
                category TEXT NOT NULL,
                course TEXT NOT NULL,
                area TEXT,
                subject TEXT NOT NULL,
                explanation TEXT,
                identity_key TEXT NOT NULL,
                is_active INTEGER DEFAULT 1,
                created_by TEXT,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_questions_identity_key
                ON questions(identity_key);
            CREATE INDEX IF NOT EXISTS idx_questions_course
                ON questions(course);
            CREATE INDEX IF NOT EXISTS idx_questions_course_subject
                ON questions(course, subject);
        """)

    logger.info("Database schema initialized successfully")


# ─── Question Operations ──────────────────────────────────────────────────────


def insert_questions(questions: list[Question], db_path: str = None) -> list[int]:
    """
    Bulk insert questions in a single transaction.

    Rows rejected by the identity-key unique index are skipped and their
    positions returned; any other storage error rolls the whole batch back.

    Returns:
        Indexes (into ``questions``) of rows that already existed.

    Raises:
        CommitError: If the batch could not be written.
    """
    conflicts: list[int] = []
    try:
        with get_connection(db_path) as conn:
            for idx, q in enumerate(questions):
                try:
                    conn.execute(
                        """INSERT INTO questions
                           (question_text, option_a, option_b, option_c, option_d,
                            correct_answer, difficulty, category, course, area,
                            subject, explanation, identity_key, is_active,
                            created_by, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            q.question_text, q.option_a, q.option_b,
                            q.option_c, q.option_d, q.correct_answer,
                            q.difficulty, q.category, q.course, q.area,
                            q.subject, q.explanation, q.identity_key,
                            1 if q.is_active else 0, q.created_by,
                            q.created_at, q.created_at,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    if "identity_key" not in str(e):
                        raise
                    conflicts.append(idx)
    except sqlite3.Error as e:
        logger.error(f"Bulk insert of {len(questions)} questions failed: {e}")
        raise CommitError(f"Database insert failed, rolled back: {e}") from e

    logger.info(
        f"Inserted {len(questions) - len(conflicts)} questions "
        f"({len(conflicts)} identity conflicts)"
    )
    return conflicts


def find_identities_by_course(course: str, db_path: str = None) -> list[dict]:
    """Return the identity fields of every stored question of ``course``."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT course, area, subject, question_text
               FROM questions WHERE course = ?""",
            (course,),
        ).fetchall()
        return [dict(r) for r in rows]


def count_questions(course: Optional[str] = None, db_path: str = None) -> int:
    """Count stored questions, optionally for one course."""
    with get_connection(db_path) as conn:
        if course:
            row = conn.execute(
                "SELECT COUNT(*) as cnt FROM questions WHERE course = ?",
                (course,),
            ).fetchone()
        else:
            row = conn.execute("SELECT COUNT(*) as cnt FROM questions").fetchone()
        return row["cnt"] if row else 0


def list_questions(course: Optional[str] = None, db_path: str = None) -> list[dict]:
    """List stored questions in insertion order."""
    with get_connection(db_path) as conn:
        if course:
            rows = conn.execute(
                "SELECT * FROM questions WHERE course = ? ORDER BY id",
                (course,),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM questions ORDER BY id").fetchall()
        return [dict(r) for r in rows]


class QuestionStore:
    """
    Storage collaborator bound to one database file.
    This is the interface the import orchestrator depends on.
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path or get_db_path()

    def init(self):
        init_db(self.db_path)

    def insert_many(self, questions: list[Question]) -> list[int]:
        return insert_questions(questions, db_path=self.db_path)

    def find_identities_by_course(self, course: str) -> list[dict]:
        return find_identities_by_course(course, db_path=self.db_path)

    def count(self, course: Optional[str] = None) -> int:
        return count_questions(course, db_path=self.db_path)
