"""
Font Resolver - Finds a renderable font file for drawtext overlays.
"""

import logging
import os
from typing import Optional

from storyreel.services.media_tools import MediaToolError, run_command

logger = logging.getLogger(__name__)


FALLBACK_FONT_FILES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:/Windows/Fonts/arial.ttf",
]

FC_MATCH_TIMEOUT_SECONDS = 5.0


async def resolve_font_file(
    family: str,
    fallbacks: Optional[list[str]] = None,
) -> Optional[str]:
    """
    Resolve a font family to a file path.

    Asks fontconfig first; when fc-match is missing or returns nothing usable,
    the first existing fallback file wins. Returns None if nothing is found, in
    which case drawtext uses its built-in default.
    """
    fallbacks = FALLBACK_FONT_FILES if fallbacks is None else fallbacks

    if family:
        try:
            result = await run_command(
                ["fc-match", "-f", "%{file}", family],
                FC_MATCH_TIMEOUT_SECONDS,
            )
            path = result.stdout.decode(errors="replace").strip() if result.returncode == 0 else ""
            if path and os.path.isfile(path):
                logger.debug(f"Font '{family}' resolved to {path}")
                return path
        except MediaToolError as e:
            logger.debug(f"fc-match unavailable: {e}")

    for candidate in fallbacks:
        if os.path.isfile(candidate):
            logger.info(f"Font '{family}' not found, using fallback {candidate}")
            return candidate

    logger.warning(f"No font file found for '{family}', using drawtext default")
    return None
