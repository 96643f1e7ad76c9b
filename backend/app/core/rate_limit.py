from slowapi import Limiter
from slowapi.util import get_remote_address
from app.core.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied to configuration writes, which invalidate every ranking
SETTINGS_WRITE_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
