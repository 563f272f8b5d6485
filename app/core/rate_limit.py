from slowapi import Limiter

from app.features.users.dependencies import get_authorization_header

# Keyed on the bearer token so each caller gets its own budget
limiter = Limiter(key_func=get_authorization_header)
