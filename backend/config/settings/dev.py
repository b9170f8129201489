from .base import *

DEBUG = True

ALLOWED_HOSTS = ALLOWED_HOSTS or ["localhost", "127.0.0.1"]
