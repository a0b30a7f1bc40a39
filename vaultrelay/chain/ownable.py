"""Two-step ownership for contracts."""

from __future__ import annotations

from vaultrelay.core.auth import Role, requires_role
from vaultrelay.core.errors import Unauthorized
from vaultrelay.core.types import to_address
from vaultrelay.chain.state import Contract, LocalChain, atomic


class Ownable2Step(Contract):
    """Owner plus pending-owner handover (transfer, then accept)."""

    def __init__(self, chain: LocalChain, address: str, owner: str) -> None:
        super().__init__(chain, address)
        self.storage["owner"] = to_address(owner)
        self.storage["pending_owner"] = None

    @property
    def owner(self) -> str:
        return self.storage["owner"]

    @property
    def pending_owner(self) -> str | None:
        return self.storage["pending_owner"]

    def role_bindings(self) -> dict[Role, str | None]:
        return {Role.OWNER: self.storage["owner"]}

    @requires_role(Role.OWNER)
    @atomic
    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self.storage["pending_owner"] = to_address(new_owner)
        self.emit("OwnershipTransferStarted", previousOwner=self.owner, newOwner=self.storage["pending_owner"])

    @atomic
    def accept_ownership(self, sender: str) -> None:
        pending = self.storage["pending_owner"]
        if pending is None or pending.lower() != sender.lower():
            raise Unauthorized(sender, "accept_ownership")
        previous = self.storage["owner"]
        self.storage["owner"] = pending
        self.storage["pending_owner"] = None
        self.emit("OwnershipTransferred", previousOwner=previous, newOwner=pending)
