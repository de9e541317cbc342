"""WSGI entrypoint for the recipe API.

The Flask development server is intentionally not started from this module so
that deployments run the ``app`` object below under a WSGI server. Local
development can still use ``flask --app main run`` (set ``RECIPE_STORE=memory``
to run without Google Cloud credentials).
"""

import logging
import os

from recipe_api import create_app

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
)

app = create_app()


__all__ = ["app"]
