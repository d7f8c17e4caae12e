from .schools import router as admin_schools_router
from .billing import router as admin_billing_router

__all__ = ['admin_schools_router', 'admin_billing_router']
