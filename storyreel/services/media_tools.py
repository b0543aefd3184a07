"""
Media Tools - Thin async wrappers around ffmpeg/ffprobe subprocesses.
"""

import asyncio
import logging
import subprocess
import sys

logger = logging.getLogger(__name__)


async def run_command(cmd: list[str], timeout: float) -> subprocess.CompletedProcess:
    """
    Run a command in the default executor with a hard timeout.

    Args:
        cmd: Command and arguments
        timeout: Seconds before the process is killed

    Returns:
        CompletedProcess with captured stdout/stderr (bytes)

    Raises:
        MediaToolError: If the binary is missing or the timeout expires
    """
    logger.debug(f"Running: {' '.join(cmd[:10])}...")

    # Use run_in_executor for Windows compatibility
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(
            None,
            lambda: subprocess.run(cmd, capture_output=True, timeout=timeout)
        )
    except subprocess.TimeoutExpired:
        raise MediaToolError(f"{cmd[0]} timed out after {timeout:.0f}s")
    except FileNotFoundError:
        raise MediaToolError(f"{cmd[0]} not found in PATH")


async def probe_duration(path: str, timeout: float) -> float:
    """Get container duration in seconds using ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        path,
    ]
    result = await run_command(cmd, timeout)

    if result.returncode != 0:
        raise MediaToolError(f"ffprobe failed for: {path}")

    try:
        duration = float(result.stdout.decode().strip())
    except ValueError:
        raise MediaToolError(f"Failed to parse duration for: {path}")

    if duration != duration or duration <= 0:
        raise MediaToolError(f"Invalid duration {duration} for: {path}")
    return duration


def escape_filter_path(path: str) -> str:
    """
    Escape file path for FFmpeg filter usage.

    Backslashes become forward slashes, a Windows drive colon is escaped, and
    characters with meaning in filter syntax are escaped before quoting.
    """
    escaped = path.replace("\\", "/")

    if sys.platform == "win32" and len(escaped) >= 2 and escaped[1] == ":":
        escaped = escaped[0] + "\\:" + escaped[2:]

    escaped = escaped.replace("'", "'\\''")
    escaped = escaped.replace("[", "\\[")
    escaped = escaped.replace("]", "\\]")

    return f"'{escaped}'"


def escape_filter_value(value: str) -> str:
    """Escape a value for the filter option parser (backslash and option separator)."""
    return (value or "").replace("\\", "\\\\").replace(":", "\\:")


def escape_drawtext(text: str) -> str:
    """
    Escape a string for a quoted drawtext text value inside a filtergraph.

    drawtext expands its text, so backslashes and % are escaped for that first;
    the option parser then strips one more escaping level. A literal ' cannot
    appear inside the quotes and becomes a typographic apostrophe.
    """
    expanded = (text or "").replace("\\", "\\\\").replace("%", "\\%")
    return escape_filter_value(expanded).replace("'", "\u2019")


class MediaToolError(Exception):
    """Exception raised when an ffmpeg/ffprobe invocation fails."""
    pass
