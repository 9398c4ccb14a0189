# pusnip/api/models.py

from pydantic import BaseModel, Field
from typing import List


class StateEntry(BaseModel):
    """One registered client as persisted in the state file."""
    ip: str = Field(..., description="Current address of the client.", examples=["10.0.0.6"])
    sourceip: str = Field(..., description="Egress address the client is translated to.", examples=["203.0.113.5"])
    dev: str = Field(..., description="Local interface bound to the source address.", examples=["eth0"])


class DeviceGroup(BaseModel):
    """All clients sharing one egress address and interface; yields one SNAT rule."""
    sourceip: str
    dev: str
    ips: List[str] = Field(default_factory=list)

    @property
    def ip_set(self) -> str:
        return "{ " + ", ".join(self.ips) + " }"

    def rule_args(self) -> List[str]:
        """nft arguments adding the SNAT rule for this group to nat/postrouting."""
        return [
            "add", "rule", "nat", "postrouting",
            "ip", "saddr", self.ip_set,
            "oif", self.dev,
            "snat", self.sourceip,
        ]
