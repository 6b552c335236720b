import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import Settings
from app.models.audit_log import AuditLog
from app.models.chat import ChatMessage, ChatThread
from app.models.failed_job import FailedJob
from app.models.notification import Notification
from app.models.order import Order
from app.models.refund import Refund

DOCUMENT_MODELS = [
    Order,
    Refund,
    Notification,
    ChatThread,
    ChatMessage,
    AuditLog,
    FailedJob,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


def create_client(settings: Settings) -> AsyncIOMotorClient:
    """Build the one Mongo client a process uses; callers own and close it."""
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    return AsyncIOMotorClient(settings.mongodb_uri, **kwargs)


async def init_db(client, settings: Settings) -> None:
    """Bind document models to `client[settings.mongodb_db_name]`."""
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
