"""Calendar days evaluated for a project's time-bucketed statistics"""

from datetime import date
from typing import List, Optional

from app.utils.helpers import day_range, utc_today


def project_days(start_date: date, today: Optional[date] = None) -> List[date]:
    """
    Ordered, gap-free days from the project start through today inclusive

    Args:
        start_date: Project start day
        today: Reference day (UTC today when None)

    Returns:
        List of days, empty if the project starts in the future
    """
    return day_range(start_date, today or utc_today())
