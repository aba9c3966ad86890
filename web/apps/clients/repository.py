"""Client lookup adapter.

Resolves client identifiers against the Django ORM for the ordering core.
Clients are managed elsewhere; this adapter only reads them.
"""

from apps.orders.domain import Client, ClientLookupPort
from apps.orders.exceptions import ClientNotFound

from .models import ClientModel


def to_domain(obj: ClientModel) -> Client:
    return Client(id=obj.id, name=obj.name, email=obj.email, document=obj.document)


class ClientRepository(ClientLookupPort):
    """Repository that reads ``Client`` entities using Django ORM."""

    def find_client_by_id(self, client_id: int) -> Client:
        """Return the client with the given id.

        Raises:
            ClientNotFound: If no client has that id.
        """
        try:
            obj = ClientModel.objects.get(pk=client_id)
        except ClientModel.DoesNotExist:
            raise ClientNotFound(client_id) from None
        return to_domain(obj)
