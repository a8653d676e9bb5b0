"""
Application State Models

The orchestrator publishes a new Snapshot on every change. The UI renders
from the latest snapshot and nothing else.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.entry import FinancialEntry
from src.models.region import DEFAULT_REGION, View
from src.models.session import Session


class ConnectivityStatus(str, Enum):
    """
    Coarse state of the remote backend link.

    Within one attempt it only moves forward:
    idle -> connecting -> connected | error.
    """
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ViewState(str, Enum):
    """Which screen the application is on."""
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_AUTHENTICATION = "awaiting_authentication"
    LOADING = "loading"
    READY = "ready"
    FETCH_ERRORED = "fetch_errored"


class Snapshot(BaseModel):
    """Everything the UI needs to render one frame."""
    model_config = ConfigDict(frozen=True)

    version: int = 0
    state: ViewState = ViewState.AWAITING_CREDENTIALS
    connectivity: ConnectivityStatus = ConnectivityStatus.IDLE
    session: Optional[Session] = None

    entries: tuple[FinancialEntry, ...] = ()
    region: str = DEFAULT_REGION
    view: View = View.DASHBOARD

    fetch_error: Optional[str] = Field(
        default=None,
        description="Set only in FETCH_ERRORED"
    )
    connection_error: Optional[str] = Field(
        default=None,
        description="Shown on the credential prompt"
    )
    login_error: Optional[str] = Field(
        default=None,
        description="Shown on the login prompt"
    )
    notice: Optional[str] = Field(
        default=None,
        description="Transient message, e.g. a failed delete"
    )

    @property
    def username(self) -> Optional[str]:
        return self.session.username if self.session else None
