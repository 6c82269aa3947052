from pydantic import BaseModel
from typing import Optional


class TicketVerifyRequest(BaseModel):
    ticket: Optional[str] = None
    client_ip: Optional[str] = None
