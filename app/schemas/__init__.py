from app.schemas.contracts import (
    AccessGrant,
    Contract,
    ContractEvents,
    Credentials,
    Locator,
    SignatureRecord,
    Tool,
)
from app.schemas.notifications import Notification
