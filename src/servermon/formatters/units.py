"""Human-readable byte, rate and duration strings."""

_BYTE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


def format_bytes(bytes_val: int | float, decimals: int = 2) -> str:
    """Format bytes value with appropriate unit.

    Args:
        bytes_val: Number of bytes (may be negative)
        decimals: Digits after the decimal point

    Returns:
        Formatted string like "1.23 GB" or "456 B"
    """
    if bytes_val == 0:
        return "0 B"
    value = float(bytes_val)
    for unit in _BYTE_UNITS[:-1]:
        if abs(value) < 1024.0:
            break
        value /= 1024.0
    else:
        unit = _BYTE_UNITS[-1]
    if unit == "B":
        return f"{int(value)} B"
    return f"{value:.{decimals}f} {unit}"


def format_rate(bytes_per_sec: float) -> str:
    """Format a transfer rate, e.g. "1.23 MB/s"."""
    return f"{format_bytes(bytes_per_sec)}/s"


def format_duration(ms: float) -> str:
    """Format a duration in milliseconds using its two or three largest units.

    Example:
        >>> format_duration(90_061_000)
        '1d 1h 1m'
        >>> format_duration(750)
        '750ms'
    """
    if ms < 1000:
        return f"{int(ms)}ms"

    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"
