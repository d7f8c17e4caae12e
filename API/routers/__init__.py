from .auth import router as auth_router
from .schools import router as schools_router
from .events import router as events_router
from .pay import router as pay_router
from .payment_methods import router as payment_methods_router
from .billing import router as billing_router
from .connect import router as connect_router
from .belts import router as belts_router
from .charges import router as charges_router
from .notifications import router as notifications_router, presence_router
from .feed import router as posts_router, announcements_router
from .classes import router as classes_router, attendance_router
from .families import router as families_router

__all__ = [
    'auth_router', 'schools_router', 'events_router', 'pay_router',
    'payment_methods_router', 'billing_router', 'connect_router', 'belts_router',
    'charges_router', 'notifications_router', 'presence_router', 'posts_router',
    'announcements_router', 'classes_router', 'attendance_router', 'families_router',
]
