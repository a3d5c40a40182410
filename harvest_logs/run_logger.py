"""
Run Logger - Markdown run logger for connector runs

Every connector run gets one Markdown file with:
- Table of Contents generation
- Progress key/value lines (mirrors ``report_progress``)
- Human confirmation prompts
- JSON dumps of the final record
- A closing summary

Usage:
    logger = RunLogger(platform="linkedin", start_url="https://www.linkedin.com/feed/")

    logger.log_heading("Authentication")
    logger.log_kv("status", "Already logged in")
    logger.log_json(record, "Result")
    logger.finalize(success=True, duration_ms=5400)
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional


class RunLogger:
    """
    Markdown run logger for step-by-step diagnostics of a connector run.
    """

    _TOC_START = "<!-- TOC_START -->"
    _TOC_END = "<!-- TOC_END -->"

    def __init__(
        self,
        platform: str,
        start_url: Optional[str] = None,
        log_dir: str = "./logs",
        session_id: Optional[str] = None,
    ):
        """
        Initialize the run logger.

        Args:
            platform: Connector platform tag (e.g. "instagram")
            start_url: First URL the connector opens
            log_dir: Directory for log files
            session_id: Optional session ID (auto-generated if not provided)
        """
        self.platform = platform
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S')
        self.dir = Path(log_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / f'run-{platform}-{self.session_id}.md'

        self._toc: List[str] = []

        with open(self.path, 'w', encoding='utf-8') as f:
            f.write(f"# {platform} Run Log ({self.session_id})\n\n")
            f.write("## Navigation\n\n")
            f.write(f"{self._TOC_START}\n(no sections yet)\n{self._TOC_END}\n\n")
            if start_url:
                f.write(f"- **Start URL**: {start_url}\n\n")

    def _write(self, text: str):
        """Append text to log file"""
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text)

    def log_heading(self, text: str):
        """Log a section heading with TOC entry."""
        self._write("\n---\n\n")
        self._write(f"## {text}\n\n")
        self._toc.append(text)
        self._update_toc()

    def log_kv(self, key: str, value: Any):
        """Log a key-value pair"""
        self._write(f"- {key}: {value}\n")

    def log_prompt(self, message: str):
        """Log a message shown to the operator while waiting for them."""
        self._write(f"> **Waiting for user:** {message}\n\n")

    def log_json(self, data: Any, title: str = "Data"):
        """Log JSON data"""
        self._write(f"### {title}\n\n")
        self._write(f"```json\n{json.dumps(data, indent=2, ensure_ascii=False, default=str)}\n```\n\n")

    def log_warning(self, message: str):
        self._write(f"**WARNING:** {message}\n\n")

    def log_error(self, message: str):
        self._write(f"**ERROR:** {message}\n\n")

    def finalize(self, success: bool, duration_ms: int = 0, error: Optional[str] = None):
        """
        Finalize the log with summary.

        Args:
            success: Whether the run produced a record
            duration_ms: Total run time
            error: Error message if failed
        """
        self._write("\n---\n\n")
        self._write("## Summary\n\n")
        self._write(f"**Status:** {'SUCCESS' if success else 'FAILED'}\n")
        self._write(f"**Duration:** {duration_ms}ms\n")
        if error:
            self._write(f"\n**Error:** {error}\n")
        self._write("\n")

    # --- Helpers ---
    @staticmethod
    def _slugify(text: str) -> str:
        """Convert text to URL-safe slug"""
        s = text.strip().lower()
        s = re.sub(r"[^a-z0-9\s-]", "", s)
        s = re.sub(r"\s+", "-", s)
        return s

    def _update_toc(self):
        """Rewrite the table of contents block in the log file"""
        content = self.path.read_text(encoding='utf-8')
        start = content.find(self._TOC_START)
        end = content.find(self._TOC_END)
        if start < 0 or end < 0:
            return
        items = "\n".join(f"- [{title}](#{self._slugify(title)})" for title in self._toc)
        content = content[:start + len(self._TOC_START)] + "\n" + items + "\n" + content[end:]
        self.path.write_text(content, encoding='utf-8')

    @property
    def log_path(self) -> str:
        """Get the path to the log file"""
        return str(self.path)


def create_run_logger(
    platform: str,
    start_url: Optional[str] = None,
    log_dir: str = "./logs",
) -> RunLogger:
    """Create a new run logger instance"""
    return RunLogger(platform=platform, start_url=start_url, log_dir=log_dir)
