"""Jinja2 rendering for batch summaries."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from dsprune.batch import BatchReport

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

BYTE_UNITS = ("B", "kB", "MB", "GB", "TB")


def format_bytes(size: int, precision: int = 2) -> str:
    """Scale a byte count to the largest unit below 1024 of it.

    ``format_bytes(1536) == "1.5 kB"``; values past TB stay in TB.
    """
    value = float(max(size, 0))
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    rounded = round(value, precision)
    if rounded >= 1024 and unit < len(BYTE_UNITS) - 1:
        # 1023.999 kB rounds to 1024 kB; show it as 1 MB
        value /= 1024
        unit += 1
        rounded = round(value, precision)
    if rounded == int(rounded):
        text = str(int(rounded))
    else:
        text = f"{rounded:.{precision}f}".rstrip("0").rstrip(".")
    return f"{text} {BYTE_UNITS[unit]}"


def _get_env(precision: int) -> Environment:
    """Create a Jinja2 environment loading from dsprune/templates/."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["bytes"] = lambda size: format_bytes(size, precision)
    return env


def render_report(report: BatchReport, precision: int = 2) -> str:
    """Render the end-of-batch summary shown by ``dsprune purge``."""
    template = _get_env(precision).get_template("report.txt.j2")
    return template.render(report=report)
