"""AWS Lambda entry point.

Mangum translates API Gateway HTTP API (v2) events into ASGI, letting
the FastAPI app run unchanged as the widget's serverless route. With
lifespan off, logging is configured at cold start and the orchestrator
is built on the first request. Set AWAIT_PERSISTENCE=true here: work
left running after a response is frozen with the execution environment.
"""

from mangum import Mangum

from chatgate.logging.audit import setup_logging
from chatgate.main import app

setup_logging()

handler = Mangum(app, lifespan="off")
