from email.utils import parseaddr

from intake.database.models import EmailAliasRecord
from intake.database.repositories.email_aliases_repository import EmailAliasesRepository
from intake.logging.logger import Log
from intake.workflow.exceptions import EmailAliasNotFoundError


def alias_address(to: str) -> str:
    """Bare lower-cased address from a ``To`` value such as ``"Books <a@b>"``."""
    return parseaddr(to)[1].strip().lower()


class EmailAliasResolver:
    """Maps an inbound email's recipient to the tenant alias it was sent to."""

    def __init__(self, aliases_repo: EmailAliasesRepository) -> None:
        self._aliases_repo = aliases_repo

    def resolve(self, tenant_id: str, to: str) -> EmailAliasRecord:
        """Return the alias and record its use.

        Raises:
            EmailAliasNotFoundError: if the address is not an active alias of the tenant.
        """
        address = alias_address(to)
        alias = self._aliases_repo.find_active(address) if address else None
        if alias is None or alias.tenant_id != tenant_id:
            Log.warning(f"Email alias {address or to!r} not found for tenant {tenant_id}")
            raise EmailAliasNotFoundError("Email alias not found")
        self._aliases_repo.mark_used(alias.id)
        return alias
