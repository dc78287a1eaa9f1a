"""Per-tool execution log files.

Each execution attempt is written to ``<log_dir>/<tool>/<timestamp>-<session>.log``
with the prompt, raw output and error. Logging is a side channel: write
failures are reported through ``logging`` and never reach the caller.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def write_execution_log(
    log_dir: Path | None,
    tool: str,
    session_id: str,
    prompt: str,
    output: str,
    error: str | None = None,
) -> Path | None:
    """Write one execution record.

    Args:
        log_dir: Root log directory; None disables logging
        tool: Tool name (used as subdirectory)
        session_id: Session the execution belongs to
        prompt: Prompt sent to the tool
        output: Raw tool output
        error: Error text, if the execution failed

    Returns:
        Path of the written file, or None if disabled or the write failed
    """
    if log_dir is None:
        return None

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    path = Path(log_dir) / tool / f"{timestamp}-{session_id}.log"

    sections = [
        f"session: {session_id}",
        f"status: {'failed' if error else 'success'}",
        "",
        "=== prompt ===",
        prompt,
        "",
        "=== output ===",
        output,
    ]
    if error:
        sections += ["", "=== error ===", error]

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Prompts from argv may carry surrogate escapes
        path.write_text(
            "\n".join(sections) + "\n", encoding="utf-8", errors="backslashreplace"
        )
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to write execution log for {tool}: {e}")
        return None

    return path
