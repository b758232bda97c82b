"""
HTTP handlers for the backend payload service.

Plain functions of ``ServiceContext`` returning Django responses; the
routing layer in ``config.api`` builds the context and calls them.

`/secret` and `/secrets` echo secret values back to the caller. They exist
for deployment diagnostics and must not be exposed on a production system.
"""

import random

from django.http import HttpResponse, JsonResponse
from pymongo.errors import PyMongoError

from apps.core.logging import get_logger
from apps.service.context import DB_NAME, ServiceContext

logger = get_logger(__name__)

GREETING = "Hello World!"
NO_SECRET = "No secret found"
DB_ERROR = "Error connecting to database"
COLLECTION_NAME = "testcollection"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def index(context: ServiceContext) -> HttpResponse:
    return HttpResponse(GREETING, content_type="text/html; charset=utf-8")


def health(context: ServiceContext) -> HttpResponse:
    """Load balancer health check. Never touches the database."""
    response = HttpResponse("OK", content_type="text/plain; charset=utf-8")
    for header, value in NO_CACHE_HEADERS.items():
        response[header] = value
    return response


def secret(context: ServiceContext) -> HttpResponse:
    value = context.payload_secret or NO_SECRET
    return HttpResponse(f"PAYLOAD_SECRET: {value}", content_type="text/html; charset=utf-8")


def secrets(context: ServiceContext) -> JsonResponse:
    """Echo the injected secrets. Database fields only appear when a database is attached."""
    body: dict[str, str | None] = {"PAYLOAD_SECRET": context.payload_secret}
    if context.db_host:
        body.update(
            DB_USERNAME=context.db_username,
            DB_PASSWORD=context.db_password,
            DB_HOST=context.db_host,
        )
    return JsonResponse(body)


def dbconnect(context: ServiceContext) -> HttpResponse:
    """
    One round trip to the database: insert a random value and read it back.

    The client is created per request and always closed before returning.
    """
    if not context.database_configured:
        logger.warning("dbconnect_not_configured")
        return HttpResponse(DB_ERROR, status=500)

    client = None
    try:
        client = context.client_factory(context.database_uri())
        collection = client[DB_NAME][COLLECTION_NAME]
        inserted = collection.insert_one({"key": "random", "value": random.random()})
        document = collection.find_one({"_id": inserted.inserted_id}, {"_id": False})
    except PyMongoError as e:
        logger.error("dbconnect_failed", db_host=context.db_host, error_type=type(e).__name__)
        return HttpResponse(DB_ERROR, status=500)
    finally:
        if client is not None:
            client.close()

    if document is None:
        logger.error("dbconnect_document_missing", db_host=context.db_host)
        return HttpResponse(DB_ERROR, status=500)

    logger.info("dbconnect_succeeded", db_host=context.db_host)
    return JsonResponse({"key": document["key"], "value": document["value"]})
