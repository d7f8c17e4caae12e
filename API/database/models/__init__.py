"""
Database models package.
Export all models for easy importing.
"""

# School (MUST be imported first - other models depend on it)
from .school import (
    School,
    SubscriptionPlan,
    SubscriptionStatus,
)

# Profiles, families, students
from .profile import (
    Role,
    SubRole,
    Profile,
    Family,
    StudentProfile,
)

# Belts
from .belts import (
    BeltRank,
    BeltTestFee,
    BeltTestPayment,
)

# Events
from .events import (
    Event,
    EventRegistration,
)

# Billing
from .billing import (
    PlatformPayment,
    CustomCharge,
)

# Notifications and presence
from .notification import (
    Notification,
    UserPresence,
)

# Feed
from .feed import (
    Post,
    Comment,
    Announcement,
)

# Classes and attendance
from .classes import (
    TrainingClass,
    AttendanceRecord,
)


__all__ = [
    # School
    'School',
    'SubscriptionPlan',
    'SubscriptionStatus',

    # Profiles
    'Role',
    'SubRole',
    'Profile',
    'Family',
    'StudentProfile',

    # Belts
    'BeltRank',
    'BeltTestFee',
    'BeltTestPayment',

    # Events
    'Event',
    'EventRegistration',

    # Billing
    'PlatformPayment',
    'CustomCharge',

    # Notifications
    'Notification',
    'UserPresence',

    # Feed
    'Post',
    'Comment',
    'Announcement',

    # Classes
    'TrainingClass',
    'AttendanceRecord',
]
