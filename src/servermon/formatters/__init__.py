"""Output formatting for servermon.

- json_formatter: snapshot wire format
- console: rich summary panel and one-line tick summary
- units: byte, rate and duration strings
"""

from servermon.formatters.console import print_snapshot, render_snapshot, summary_line
from servermon.formatters.json_formatter import snapshot_to_dict, snapshot_to_json
from servermon.formatters.units import format_bytes, format_duration, format_rate

__all__ = [
    "format_bytes",
    "format_duration",
    "format_rate",
    "print_snapshot",
    "render_snapshot",
    "snapshot_to_dict",
    "snapshot_to_json",
    "summary_line",
]
