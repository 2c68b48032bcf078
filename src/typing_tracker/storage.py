"""SQLite storage for the aggregation backend.

Keeps every received activity log plus a per-user, per-day summary that is
updated as logs arrive.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .config import DB_PATH
from .logging_config import get_logger
from .types import UserActivitySummary
from .utils import calculate_ratio

logger = get_logger(__name__, namespace='backend')

_LOG_COLUMNS = (
    'username', 'file_name', 'file_path', 'date', 'time', 'timestamp',
    'action_type', 'typed_lines', 'pasted_lines', 'total_lines',
    'content_snippet', 'editor_version',
)


def _resolve(db_path: Path | None) -> Path:
    return Path(db_path) if db_path is not None else DB_PATH


def init_database(db_path: Path | None = None):
    """Initialize the activity database with schema."""
    db_path = _resolve(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        c = conn.cursor()

        c.execute('''
            CREATE TABLE IF NOT EXISTS activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL,
                file_name TEXT NOT NULL,
                file_path TEXT NOT NULL,
                date TEXT NOT NULL,
                time TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                action_type TEXT NOT NULL,
                typed_lines INTEGER NOT NULL DEFAULT 0,
                pasted_lines INTEGER NOT NULL DEFAULT 0,
                total_lines INTEGER NOT NULL DEFAULT 0,
                content_snippet TEXT,
                editor_version TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')

        c.execute('''
            CREATE TABLE IF NOT EXISTS user_summaries (
                username TEXT NOT NULL,
                date TEXT NOT NULL,
                total_typed_lines INTEGER NOT NULL DEFAULT 0,
                total_pasted_lines INTEGER NOT NULL DEFAULT 0,
                typing_to_pasting_ratio REAL NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (username, date)
            )
        ''')

        # Distinct files per user and day, for totalFilesEdited
        c.execute('''
            CREATE TABLE IF NOT EXISTS summary_files (
                username TEXT NOT NULL,
                date TEXT NOT NULL,
                file_path TEXT NOT NULL,
                PRIMARY KEY (username, date, file_path)
            )
        ''')

        c.execute('''
            CREATE INDEX IF NOT EXISTS idx_activity_username_date
            ON activity_logs(username, date)
        ''')

        c.execute('''
            CREATE INDEX IF NOT EXISTS idx_activity_username_timestamp
            ON activity_logs(username, timestamp)
        ''')

        conn.commit()


def _update_user_summary(c: sqlite3.Cursor, username: str, date: str,
                         typed: int, pasted: int, file_paths: set[str], now: str):
    c.execute('''
        INSERT INTO user_summaries (username, date, total_typed_lines, total_pasted_lines, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(username, date) DO UPDATE SET
            total_typed_lines = total_typed_lines + excluded.total_typed_lines,
            total_pasted_lines = total_pasted_lines + excluded.total_pasted_lines,
            updated_at = excluded.updated_at
    ''', (username, date, typed, pasted, now))

    c.executemany('''
        INSERT OR IGNORE INTO summary_files (username, date, file_path)
        VALUES (?, ?, ?)
    ''', [(username, date, p) for p in file_paths])

    c.execute('''
        SELECT total_typed_lines, total_pasted_lines FROM user_summaries
        WHERE username = ? AND date = ?
    ''', (username, date))
    total_typed, total_pasted = c.fetchone()
    c.execute('''
        UPDATE user_summaries SET typing_to_pasting_ratio = ?
        WHERE username = ? AND date = ?
    ''', (calculate_ratio(total_typed, total_pasted), username, date))


def insert_activity_logs(logs: list[dict], db_path: Path | None = None) -> int:
    """Store activity logs (wire-format dicts) and update daily summaries.

    All logs are written in one transaction. Returns the number stored.
    """
    now = datetime.now(timezone.utc).isoformat()
    rows = []
    # (username, date) -> [typed, pasted, file paths]
    summaries: dict[tuple[str, str], list] = {}

    for log in logs:
        rows.append((
            log['username'], log['fileName'], log['filePath'], log['date'],
            log['time'], log['timestamp'], log['actionType'], log['typedLines'],
            log['pastedLines'], log['totalLines'], log.get('contentSnippet'),
            log['editorVersion'], now,
        ))
        entry = summaries.setdefault((log['username'], log['date']), [0, 0, set()])
        entry[0] += log['typedLines']
        entry[1] += log['pastedLines']
        entry[2].add(log['filePath'])

    placeholders = ', '.join('?' for _ in range(len(_LOG_COLUMNS) + 1))
    with sqlite3.connect(_resolve(db_path)) as conn:
        c = conn.cursor()
        c.executemany(
            f"INSERT INTO activity_logs ({', '.join(_LOG_COLUMNS)}, created_at) VALUES ({placeholders})",
            rows,
        )
        for (username, date), (typed, pasted, file_paths) in summaries.items():
            _update_user_summary(c, username, date, typed, pasted, file_paths, now)
        conn.commit()

    logger.debug(f"Stored {len(rows)} activity logs")
    return len(rows)


def get_user_summary(username: str, date: str,
                     db_path: Path | None = None) -> UserActivitySummary | None:
    """Daily summary for a user, or None if nothing was recorded."""
    with sqlite3.connect(_resolve(db_path)) as conn:
        c = conn.cursor()
        c.execute('''
            SELECT total_typed_lines, total_pasted_lines, typing_to_pasting_ratio
            FROM user_summaries WHERE username = ? AND date = ?
        ''', (username, date))
        row = c.fetchone()
        if row is None:
            return None

        c.execute('''
            SELECT COUNT(*) FROM summary_files WHERE username = ? AND date = ?
        ''', (username, date))
        files = c.fetchone()[0]

    return {
        'username': username,
        'date': date,
        'totalTypedLines': row[0],
        'totalPastedLines': row[1],
        'typingToPastingRatio': row[2],
        'totalFilesEdited': files,
    }


def get_activity_logs(username: str, date: str | None = None, limit: int = 100,
                      skip: int = 0, db_path: Path | None = None) -> tuple[list[dict], int]:
    """Activity logs for a user, newest first, with the total match count."""
    where = 'WHERE username = ?'
    params: list = [username]
    if date:
        where += ' AND date = ?'
        params.append(date)

    with sqlite3.connect(_resolve(db_path)) as conn:
        conn.row_factory = sqlite3.Row
        c = conn.cursor()
        c.execute(f'''
            SELECT * FROM activity_logs {where}
            ORDER BY timestamp DESC, id DESC
            LIMIT ? OFFSET ?
        ''', (*params, limit, skip))
        rows = c.fetchall()

        c.execute(f'SELECT COUNT(*) FROM activity_logs {where}', params)
        total = c.fetchone()[0]

    logs = []
    for r in rows:
        log = {
            'username': r['username'],
            'fileName': r['file_name'],
            'filePath': r['file_path'],
            'date': r['date'],
            'time': r['time'],
            'timestamp': r['timestamp'],
            'actionType': r['action_type'],
            'typedLines': r['typed_lines'],
            'pastedLines': r['pasted_lines'],
            'totalLines': r['total_lines'],
            'editorVersion': r['editor_version'],
            'createdAt': r['created_at'],
        }
        if r['content_snippet'] is not None:
            log['contentSnippet'] = r['content_snippet']
        logs.append(log)
    return logs, total
