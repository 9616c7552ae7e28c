import os

# DJANGO_ENV: local (default) | prod | test
DJANGO_ENV = os.getenv("DJANGO_ENV", "local").strip().lower()

if DJANGO_ENV == "prod":
    from .prod import *  # noqa
elif DJANGO_ENV == "test":
    from .test import *  # noqa
else:
    from .local import *  # noqa
