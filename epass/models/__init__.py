from epass.models.attendee import ATTENDEE_STATUSES, Attendee
from epass.models.checkin import CHECKIN_METHODS, Checkin
from epass.models.system_setting import SYSTEM_SETTING_KEYS, SystemSetting

__all__ = [
    "Attendee",
    "Checkin",
    "SystemSetting",
    "ATTENDEE_STATUSES",
    "CHECKIN_METHODS",
    "SYSTEM_SETTING_KEYS",
]
