import math

from fixflow.workflow.models import Progress

TICKS = 10
FILLED = "█"
EMPTY = "░"


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; progress bars round .5 up
    return int(math.floor(value + 0.5))


def render_progress(step: int, total: int) -> Progress:
    if total <= 0:
        raise ValueError("total must be a positive number of steps")
    percentage = _round_half_up(step / total * 100)
    filled = _round_half_up(step / total * TICKS)
    return Progress(percentage=percentage, filled_ticks=filled, empty_ticks=TICKS - filled)


def format_progress_bar(step: int, total: int) -> str:
    """E.g. format_progress_bar(3, 6) -> '█████░░░░░ 50% (3/6)'"""
    progress = render_progress(step, total)
    bar = FILLED * progress.filled_ticks + EMPTY * progress.empty_ticks
    return f"{bar} {progress.percentage}% ({step}/{total})"
