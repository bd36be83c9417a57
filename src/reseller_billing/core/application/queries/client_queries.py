import uuid
from dataclasses import dataclass
from datetime import date

from reseller_billing.core.application.cqrs import QueryDTO


@dataclass(frozen=True, slots=True, kw_only=True)
class GetClientOverviewQuery(QueryDTO):
    user_id: uuid.UUID
    today: date | None = None

@dataclass(frozen=True, slots=True, kw_only=True)
class GetOfflineClientOverviewQuery(QueryDTO):
    client_id: uuid.UUID
    today: date | None = None
