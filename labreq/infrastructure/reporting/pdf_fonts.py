from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from labreq.config import settings

_REGULAR_FONT_NAME = "LabReqSans"
_BOLD_FONT_NAME = "LabReqSans-Bold"
_FALLBACK_FONTS = ("Helvetica", "Helvetica-Bold")

logger = logging.getLogger(__name__)


def _candidate_font_paths() -> list[tuple[Path, Path | None]]:
    paths: list[tuple[Path, Path | None]] = []
    if settings.pdf_font:
        paths.append((Path(settings.pdf_font), None))

    paths.extend(
        [
            # Linux
            (
                Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
                Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
            ),
            (
                Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
                Path("/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf"),
            ),
            # Windows
            (Path("C:/Windows/Fonts/arial.ttf"), Path("C:/Windows/Fonts/arialbd.ttf")),
        ]
    )
    return paths


@lru_cache(maxsize=1)
def get_pdf_font_names() -> tuple[str, str]:
    """Return ``(regular, bold)`` font names registered with reportlab.

    A TrueType font is preferred so non-Latin patient names print correctly;
    without one the built-in Helvetica pair is used.
    """
    registered = pdfmetrics.getRegisteredFontNames()
    if _REGULAR_FONT_NAME in registered:
        bold = _BOLD_FONT_NAME if _BOLD_FONT_NAME in registered else _REGULAR_FONT_NAME
        return _REGULAR_FONT_NAME, bold

    for regular_path, bold_path in _candidate_font_paths():
        if not regular_path.exists():
            continue
        try:
            pdfmetrics.registerFont(TTFont(_REGULAR_FONT_NAME, str(regular_path)))
        except (TTFError, OSError):
            logger.warning("Unable to load PDF font %s", regular_path)
            continue
        if bold_path is not None and bold_path.exists():
            try:
                pdfmetrics.registerFont(TTFont(_BOLD_FONT_NAME, str(bold_path)))
                return _REGULAR_FONT_NAME, _BOLD_FONT_NAME
            except (TTFError, OSError):
                logger.warning("Unable to load PDF bold font %s", bold_path)
        return _REGULAR_FONT_NAME, _REGULAR_FONT_NAME

    return _FALLBACK_FONTS
