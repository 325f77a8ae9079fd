"""
Agent Logger for Markdown Execution Logs.
Writes a human-readable record of each assistant session: what was
heard, how it was understood, where the farmer was and what was sent.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import json

logger = logging.getLogger(__name__)


class AgentLogger:
    """
    Markdown logger for assistant sessions.

    Documents:
    - Session starts and the capabilities the client reported
    - Transcripts with confidence
    - Detected language, intent and entities
    - Location fetch outcomes
    - Errors and per-turn timings
    """

    def __init__(self, log_path: str = "logs/agent_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

        self._start_writer()

    def _start_writer(self):
        """Start the background writer when a loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, entries are written synchronously
            return
        self._writer_task = loop.create_task(self._write_loop())
        self._running = True

    async def _write_loop(self):
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
            logger.error(f"Failed to write log: {e}")

    async def _log(self, entry: str):
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_session_start(
        self,
        session_id: str,
        capabilities: Dict[str, bool]
    ):
        """Log the start of a new session."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        rows = "\n".join(
            f"| {name} | {'✅' if available else '❌'} |"
            for name, available in capabilities.items()
        )

        entry = f"""
---

## 🆕 Session Started: `{session_id}`

**Timestamp:** {timestamp}

| Capability | Available |
|------------|-----------|
{rows}

---
"""
        await self._log(entry)

    async def log_transcript(
        self,
        session_id: str,
        transcript: str,
        confidence: float,
        language: str
    ):
        """Log a finished voice capture."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if confidence >= 0.9:
            conf_indicator = "🟢"
        elif confidence >= 0.7:
            conf_indicator = "🟡"
        else:
            conf_indicator = "🔴"

        entry = f"""### 🎤 Farmer Said | {timestamp}

**Session:** `{session_id}`
**Transcript:** "{transcript}"
**Language:** {language}
**Confidence:** {conf_indicator} {confidence:.2%}
"""
        await self._log(entry)

    async def log_intent(
        self,
        session_id: str,
        text: str,
        language: str,
        intent: Dict[str, Any]
    ):
        """Log how a query was understood."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        entities = json.dumps(intent.get("entities", {}), indent=2, ensure_ascii=False)

        entry = f"""### 🧭 Understood | {timestamp}

**Session:** `{session_id}`
**Query:** "{text}"
**Language:** {language}
**Intent:** `{intent.get('intent')}` ({intent.get('confidence', 0):.2f})

**Entities:**
```json
{entities}
```
"""
        await self._log(entry)

    async def log_location(
        self,
        session_id: str,
        location: Optional[Dict[str, Any]],
        error: Optional[str] = None
    ):
        """Log the outcome of a location fetch."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if location is not None:
            outcome = f"📍 {location['latitude']:.4f}, {location['longitude']:.4f}"
            address = location.get("address")
            if address:
                outcome += f" ({', '.join(str(v) for v in address.values())})"
        else:
            outcome = f"⚠️ Sent without location: {error or 'unavailable'}"

        entry = f"""#### 🗺️ Location | {timestamp}

**Session:** `{session_id}`
{outcome}
"""
        await self._log(entry)

    async def log_turn_complete(
        self,
        session_id: str,
        message: Dict[str, Any],
        metrics: Dict[str, Any]
    ):
        """Log the envelope handed to the transport, with stage timings."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        def fmt(value: Optional[float]) -> str:
            return f"{value:.1f}ms" if value is not None else "N/A"

        entry = f"""### ✅ Turn Complete | {timestamp}

**Session:** `{session_id}`
**Language:** {message.get('detected_language')}
**Location attached:** {'yes' if 'location' in message else 'no'}

| Stage | Latency |
|-------|---------|
| Language | {fmt(metrics.get('detect_latency_ms'))} |
| Intent | {fmt(metrics.get('classify_latency_ms'))} |
| Location | {fmt(metrics.get('location_latency_ms'))} |
| Total | {fmt(metrics.get('total_latency_ms'))} |

---
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""

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

    async def log_system_event(
        self,
        event: str,
        details: Dict[str, Any]
    ):
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

    async def initialize_log(self):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        header = f"""# 🌾 Krishi Assistant Execution Log

**Generated:** {timestamp}

---

## System Overview

Voice and text queries from farmers, understood and routed with location.

**Pipeline:** Speech → Transcript → Language → Intent + Entities → Location → Message

**Supported Languages:**
- Marathi (mr)
- English (en)

---

## Execution Log

"""

        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Agent log initialized: {self.log_path}")

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

        logger.info("Agent logger closed")
