from datetime import datetime, timedelta
from bson import ObjectId


def object_id_to_str(obj_id) -> str:
    """Convert ObjectId to string."""
    if isinstance(obj_id, ObjectId):
        return str(obj_id)
    return obj_id


def epoch_millis(moment: datetime = None) -> int:
    """Milliseconds since the epoch, used to build stable external identifiers."""
    moment = moment or datetime.utcnow()
    return int((moment - datetime(1970, 1, 1)).total_seconds() * 1000)


def add_business_days(start: datetime, days: int) -> datetime:
    """Add business days (Monday to Friday) to a datetime."""
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current
