"""
Shared slowapi limiter; decorated endpoints must accept a ``request: Request``
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from travelmate.core.settings import settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.ENABLE_RATE_LIMITING,
)
