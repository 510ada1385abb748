"""Formatting helpers shared by the dashboard and the dump command."""


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_time(secs: int) -> str:
    """Cumulative CPU time as HH:MM:SS, switching to days past 24 hours."""
    mins = secs // 60
    hours = mins // 60
    days = hours // 24
    if days > 99:
        return f"{days}d"
    if days > 0:
        return f"{days:02d}d{hours % 24:02d}h"
    return f"{hours:02d}:{mins % 60:02d}:{secs % 60:02d}"


def format_uptime(seconds: float) -> str:
    uptime = int(seconds)
    days = uptime // 86400
    hours = (uptime % 86400) // 3600
    minutes = (uptime % 3600) // 60
    secs = uptime % 60
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def tree_prefix(depth: int) -> str:
    """Indentation drawn before a command in tree view."""
    if depth == 0:
        return ""
    return " " * (depth * 2) + "└─ "
