import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ReconciliationConflict, RecordNotFoundError
from app.models.base import require_object_id
from app.models.client import Client
from app.repositories.client_repo import ClientRepository
from app.schemas.client import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: AsyncIOMotorDatabase, clients: Optional[ClientRepository] = None):
        self.db = db
        self.clients = clients or ClientRepository(db)

    async def create_client(self, client_in: ClientCreate) -> Client:
        try:
            client = await self.clients.create_client(client_in)
        except DuplicateKeyError:
            raise ReconciliationConflict(
                f"Customer code {client_in.customer_code.strip().upper()} already exists"
            )
        logger.info("Client %s created: %s", client.id, client.customer_code)
        return client

    async def get_client(self, client_id: str) -> Client:
        oid = require_object_id(client_id, "client")
        client = await self.clients.get_client(oid)
        if client is None:
            raise RecordNotFoundError("Client", client_id)
        return client

    async def list_clients(self, search: Optional[str] = None, limit: int = 100) -> List[Client]:
        return await self.clients.list_clients(search=search, limit=limit)

    async def update_client(self, client_id: str, client_in: ClientUpdate) -> Client:
        """
        Change contact or credit details.

        Customer code and email stay unique across clients. A lower credit
        limit is accepted even if the client is already over it; the balance
        report then shows negative credit available.
        """
        oid = require_object_id(client_id, "client")
        existing = await self.clients.get_client(oid)
        if existing is None:
            raise RecordNotFoundError("Client", client_id)

        fields = client_in.model_dump(exclude_unset=True, exclude_none=True)
        for name, value in fields.items():
            if isinstance(value, str):
                fields[name] = value.strip()
        if "customer_code" in fields:
            fields["customer_code"] = fields["customer_code"].upper()
        if "email" in fields:
            fields["email"] = fields["email"].lower()
        if "price_category" in fields:
            fields["price_category"] = fields["price_category"].value
        if not fields:
            return existing

        code = fields.get("customer_code")
        if code and await self.clients.exists_other("customer_code", code, oid):
            raise ReconciliationConflict(f"Customer code {code} already exists")
        email = fields.get("email")
        if email and await self.clients.exists_other("email", email, oid):
            raise ReconciliationConflict(f"Email {email} is already registered")

        try:
            client = await self.clients.update_client(oid, fields)
        except DuplicateKeyError:
            raise ReconciliationConflict(f"Customer code {code} already exists")
        if client is None:
            raise RecordNotFoundError("Client", client_id)

        logger.info("Client %s updated: %s", client_id, ", ".join(sorted(fields)))
        return client
