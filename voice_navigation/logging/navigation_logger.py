"""
Navigation Logger for Markdown Execution Logs.
Keeps a human-readable record of voice navigation requests and outcomes.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class NavigationLogger:
    """
    Markdown logger for voice navigation.

    Documents:
    - Session starts
    - Intent matches with confidence
    - Navigation outcomes and confirmations
    - Errors and system events
    """

    def __init__(self, log_path: str = "logs/navigation_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

        self._start_writer()

    def _start_writer(self):
        """Start the background log writer when an event loop is running."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop, entries are written synchronously
            return
        self._running = True
        self._writer_task = asyncio.create_task(self._write_loop())

    async def _write_loop(self):
        """Background loop to write logs asynchronously."""
        while self._running:
            try:
                entry = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                self._sync_write(entry)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    def _sync_write(self, entry: str):
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry)
                f.write("\n")
        except OSError as e:
            logger.error(f"Failed to write navigation log: {e}")

    async def _log(self, entry: str):
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_session_start(self, session_id: str, language: str = "en-US", role: Optional[str] = None):
        """Log the first request of a session."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        entry = f"""
---

## 🆕 Session Started: `{session_id}`

**Timestamp:** {timestamp}
**Language:** {language}
**Role:** {role or 'anonymous'}

---
"""
        await self._log(entry)

    async def log_match(
        self,
        session_id: str,
        utterance: str,
        intent: Optional[str],
        confidence: float,
        match_type: str,
        language: str,
        retry_count: int = 1
    ):
        """Log an intent match."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if confidence >= 0.9:
            conf_indicator = "🟢"
        elif confidence >= 0.5:
            conf_indicator = "🟡"
        else:
            conf_indicator = "🔴"

        entry = f"""### 🎤 Utterance | {timestamp}

**Session:** `{session_id}`
**Text:** "{utterance}"
**Language:** {language}
**Intent:** `{intent or 'none'}` ({match_type})
**Confidence:** {conf_indicator} {confidence:.2%}
**Attempt:** {retry_count}
"""
        await self._log(entry)

    async def log_execution(
        self,
        session_id: str,
        intent: str,
        result: Dict[str, Any],
        execution_time_ms: Optional[float] = None
    ):
        """Log a navigation outcome."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if result.get("executed"):
            status = "✅ Executed"
        elif result.get("requires_confirmation"):
            status = "⏸️ Awaiting confirmation"
        elif result.get("success"):
            status = "ℹ️ Not executed"
        else:
            status = "⛔ Failed"

        result_str = json.dumps(result, indent=2, ensure_ascii=False, default=str)
        if len(result_str) > 500:
            result_str = result_str[:500] + "\n  ... (truncated)"

        entry = f"""#### 🧭 Navigation: `{intent}` | {timestamp}

**Session:** `{session_id}`
**Status:** {status}

```json
{result_str}
```
{f'**Execution Time:** {execution_time_ms:.0f}ms' if execution_time_ms is not None else ''}
"""
        await self._log(entry)

    async def log_confirmation(self, confirmation_id: str, confirmed: bool, route: Optional[str] = None):
        """Log the user's answer to a confirmation prompt."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        answer = "👍 Confirmed" if confirmed else "👎 Cancelled"

        entry = f"""#### ❔ Confirmation `{confirmation_id}` | {timestamp}

**Answer:** {answer}
**Route:** {route or 'N/A'}
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        suggestions: Optional[List[str]] = None,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""
        if suggestions:
            entry += "\n**Suggestions:** " + ", ".join(f'"{s}"' for s in suggestions) + "\n"

        if stack_trace:
            entry += f"""
<details>
<summary>Stack Trace</summary>

```
{stack_trace}
```

</details>
"""
        await self._log(entry)

    async def log_system_event(self, event: str, details: Dict[str, Any]):
        """Log a system event."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        details_str = ""
        for key, value in details.items():
            details_str += f"- **{key}:** {value}\n"

        entry = f"""### ⚙️ System Event | {timestamp}

**Event:** {event}

{details_str}
---
"""
        await self._log(entry)

    async def initialize_log(self, languages: Optional[List[str]] = None):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        language_lines = "\n".join(f"- {lang}" for lang in (languages or ["en-US", "hi-IN"]))

        header = f"""# 🧭 Voice Navigation Execution Log

**Generated:** {timestamp}

---

## System Overview

**Pipeline:** Utterance → Pattern Match → Security Check → Navigate → Feedback

**Supported Languages:**
{language_lines}

---

## Execution Log

"""
        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Navigation log initialized: {self.log_path}")

    async def close(self):
        """Close the logger and flush pending entries."""
        self._running = False

        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass

        while not self._queue.empty():
            try:
                entry = self._queue.get_nowait()
                self._sync_write(entry)
            except asyncio.QueueEmpty:
                break

        logger.info("Navigation logger closed")
