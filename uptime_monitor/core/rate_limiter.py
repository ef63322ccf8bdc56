"""Rate limiter shared by the API routers and the application."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed on client address; registered on app.state.limiter in main
limiter = Limiter(key_func=get_remote_address)
