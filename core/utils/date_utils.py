from datetime import datetime
from zoneinfo import ZoneInfo
from core.config import settings

def get_now() -> datetime:
    """
    Returns the current datetime in the configured timezone.
    """
    return datetime.now(ZoneInfo(settings.TIMEZONE))
