"""Minimal ERC-20 token used for custody, fees and bridged assets."""

from __future__ import annotations

from vaultrelay.chain.ownable import Ownable2Step
from vaultrelay.chain.state import LocalChain, atomic
from vaultrelay.core.auth import Role, is_authorized, requires_role
from vaultrelay.core.errors import InvalidAmount, TokenTransferError, Unauthorized
from vaultrelay.core.types import to_address


def _non_negative(amount: int) -> None:
    if amount < 0:
        raise InvalidAmount("Amount must not be negative")


class ERC20Token(Ownable2Step):
    """Balances, allowances, transfer / transferFrom, owner mint."""

    def __init__(
        self,
        chain: LocalChain,
        address: str,
        symbol: str,
        owner: str,
        decimals: int = 18,
    ) -> None:
        super().__init__(chain, address, owner)
        self.symbol = symbol
        self.decimals = decimals
        self.storage["balances"] = {}
        self.storage["allowances"] = {}
        self.storage["total_supply"] = 0
        self.storage["minters"] = set()

    def __repr__(self) -> str:
        return f"ERC20Token({self.symbol}@{self.chain.name}:{self.address})"

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self.storage["total_supply"]

    def balance_of(self, account: str) -> int:
        return self.storage["balances"].get(to_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.storage["allowances"].get((to_address(owner), to_address(spender)), 0)

    # ── Mutations ────────────────────────────────────────────────────────

    def _move(self, src: str, dst: str, amount: int) -> None:
        _non_negative(amount)
        balances = self.storage["balances"]
        available = balances.get(src, 0)
        if available < amount:
            raise TokenTransferError(
                f"{self.symbol}: transfer amount {amount} exceeds balance {available} of {src}",
                {"token": self.address, "account": src, "available": available, "required": amount},
            )
        balances[src] = available - amount
        balances[dst] = balances.get(dst, 0) + amount
        self.emit("Transfer", src=src, dst=dst, amount=amount)

    @atomic
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._move(to_address(sender), to_address(to), amount)
        return True

    @atomic
    def approve(self, sender: str, spender: str, amount: int) -> bool:
        _non_negative(amount)
        key = (to_address(sender), to_address(spender))
        self.storage["allowances"][key] = amount
        self.emit("Approval", owner=key[0], spender=key[1], amount=amount)
        return True

    @atomic
    def transfer_from(self, sender: str, src: str, dst: str, amount: int) -> bool:
        _non_negative(amount)
        key = (to_address(src), to_address(sender))
        allowed = self.storage["allowances"].get(key, 0)
        if allowed < amount:
            raise TokenTransferError(
                f"{self.symbol}: allowance {allowed} of {key[1]} below {amount}",
                {"token": self.address, "owner": key[0], "spender": key[1], "available": allowed, "required": amount},
            )
        self.storage["allowances"][key] = allowed - amount
        self._move(key[0], to_address(dst), amount)
        return True

    @requires_role(Role.OWNER)
    @atomic
    def add_minter(self, sender: str, minter: str) -> None:
        self.storage["minters"].add(to_address(minter))

    @atomic
    def mint(self, sender: str, to: str, amount: int) -> None:
        if not (
            is_authorized(self.role_bindings(), {Role.OWNER}, sender)
            or to_address(sender) in self.storage["minters"]
        ):
            raise Unauthorized(sender, "mint")
        if amount <= 0:
            raise InvalidAmount()
        account = to_address(to)
        self.storage["balances"][account] = self.storage["balances"].get(account, 0) + amount
        self.storage["total_supply"] += amount
        self.emit("Transfer", src=None, dst=account, amount=amount)

    @atomic
    def burn(self, sender: str, amount: int) -> None:
        _non_negative(amount)
        account = to_address(sender)
        available = self.storage["balances"].get(account, 0)
        if available < amount:
            raise TokenTransferError(
                f"{self.symbol}: burn amount {amount} exceeds balance {available}",
                {"token": self.address, "account": account, "available": available, "required": amount},
            )
        self.storage["balances"][account] = available - amount
        self.storage["total_supply"] -= amount
        self.emit("Transfer", src=account, dst=None, amount=amount)
