from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

# Keyed on the client address; the widget is called from anonymous visitor browsers.
# Widget routes share one "widget" budget per address.
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
