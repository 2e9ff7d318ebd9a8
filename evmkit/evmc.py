"""Core EVM interface types: revisions, status codes, messages and an in-memory host."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Sequence

ADDRESS_SIZE = 20
BYTES32_SIZE = 32

ZERO_ADDRESS = bytes(ADDRESS_SIZE)
ZERO_BYTES32 = bytes(BYTES32_SIZE)

_MAX_RECORDED_ACCOUNT_ACCESSES = 200
_MAX_RECORDED_CALLS = 100


class Revision(enum.IntEnum):
    """Ethereum protocol revisions, in activation order."""

    FRONTIER = 0
    HOMESTEAD = 1
    TANGERINE_WHISTLE = 2
    SPURIOUS_DRAGON = 3
    BYZANTIUM = 4
    CONSTANTINOPLE = 5
    PETERSBURG = 6
    ISTANBUL = 7
    BERLIN = 8
    LONDON = 9


MAX_REVISION = Revision.LONDON


class StatusCode(enum.IntEnum):
    """Outcome of an execution."""

    SUCCESS = 0
    FAILURE = 1
    REVERT = 2
    OUT_OF_GAS = 3
    INVALID_INSTRUCTION = 4
    UNDEFINED_INSTRUCTION = 5
    STACK_OVERFLOW = 6
    STACK_UNDERFLOW = 7
    BAD_JUMP_DESTINATION = 8
    INVALID_MEMORY_ACCESS = 9
    CALL_DEPTH_EXCEEDED = 10
    STATIC_MODE_VIOLATION = 11
    PRECOMPILE_FAILURE = 12
    CONTRACT_VALIDATION_FAILURE = 13
    ARGUMENT_OUT_OF_RANGE = 14
    WASM_UNREACHABLE_INSTRUCTION = 15
    WASM_TRAP = 16
    INSUFFICIENT_BALANCE = 17
    INTERNAL_ERROR = -1
    REJECTED = -2
    OUT_OF_MEMORY = -3


class CallKind(enum.IntEnum):
    """Kind of a message call."""

    CALL = 0
    DELEGATECALL = 1
    CALLCODE = 2
    CREATE = 3
    CREATE2 = 4


class AccessStatus(enum.IntEnum):
    """Warm/cold access status (EIP-2929)."""

    COLD = 0
    WARM = 1


class StorageStatus(enum.IntEnum):
    """Effect of a storage write."""

    UNCHANGED = 0
    MODIFIED = 1
    MODIFIED_AGAIN = 2
    ADDED = 3
    DELETED = 4


def _opcode_members():
    members = [
        ("STOP", 0x00), ("ADD", 0x01), ("MUL", 0x02), ("SUB", 0x03), ("DIV", 0x04),
        ("SDIV", 0x05), ("MOD", 0x06), ("SMOD", 0x07), ("ADDMOD", 0x08),
        ("MULMOD", 0x09), ("EXP", 0x0A), ("SIGNEXTEND", 0x0B),
        ("LT", 0x10), ("GT", 0x11), ("SLT", 0x12), ("SGT", 0x13), ("EQ", 0x14),
        ("ISZERO", 0x15), ("AND", 0x16), ("OR", 0x17), ("XOR", 0x18), ("NOT", 0x19),
        ("BYTE", 0x1A), ("SHL", 0x1B), ("SHR", 0x1C), ("SAR", 0x1D),
        ("KECCAK256", 0x20),
        ("ADDRESS", 0x30), ("BALANCE", 0x31), ("ORIGIN", 0x32), ("CALLER", 0x33),
        ("CALLVALUE", 0x34), ("CALLDATALOAD", 0x35), ("CALLDATASIZE", 0x36),
        ("CALLDATACOPY", 0x37), ("CODESIZE", 0x38), ("CODECOPY", 0x39),
        ("GASPRICE", 0x3A), ("EXTCODESIZE", 0x3B), ("EXTCODECOPY", 0x3C),
        ("RETURNDATASIZE", 0x3D), ("RETURNDATACOPY", 0x3E), ("EXTCODEHASH", 0x3F),
        ("BLOCKHASH", 0x40), ("COINBASE", 0x41), ("TIMESTAMP", 0x42), ("NUMBER", 0x43),
        ("DIFFICULTY", 0x44), ("GASLIMIT", 0x45), ("CHAINID", 0x46),
        ("SELFBALANCE", 0x47), ("BASEFEE", 0x48),
        ("POP", 0x50), ("MLOAD", 0x51), ("MSTORE", 0x52), ("MSTORE8", 0x53),
        ("SLOAD", 0x54), ("SSTORE", 0x55), ("JUMP", 0x56), ("JUMPI", 0x57),
        ("PC", 0x58), ("MSIZE", 0x59), ("GAS", 0x5A), ("JUMPDEST", 0x5B),
    ]
    members += [(f"PUSH{n}", 0x5F + n) for n in range(1, 33)]
    members += [(f"DUP{n}", 0x7F + n) for n in range(1, 17)]
    members += [(f"SWAP{n}", 0x8F + n) for n in range(1, 17)]
    members += [(f"LOG{n}", 0xA0 + n) for n in range(5)]
    members += [
        ("CREATE", 0xF0), ("CALL", 0xF1), ("CALLCODE", 0xF2), ("RETURN", 0xF3),
        ("DELEGATECALL", 0xF4), ("CREATE2", 0xF5), ("STATICCALL", 0xFA),
        ("REVERT", 0xFD), ("INVALID", 0xFE), ("SELFDESTRUCT", 0xFF),
    ]
    return members


Opcode = enum.IntEnum("Opcode", _opcode_members(), module=__name__)
Opcode.__doc__ = "EVM instruction opcodes."

_INTRODUCED_IN = {
    Opcode.DELEGATECALL: Revision.HOMESTEAD,
    Opcode.RETURNDATASIZE: Revision.BYZANTIUM,
    Opcode.RETURNDATACOPY: Revision.BYZANTIUM,
    Opcode.STATICCALL: Revision.BYZANTIUM,
    Opcode.REVERT: Revision.BYZANTIUM,
    Opcode.SHL: Revision.CONSTANTINOPLE,
    Opcode.SHR: Revision.CONSTANTINOPLE,
    Opcode.SAR: Revision.CONSTANTINOPLE,
    Opcode.EXTCODEHASH: Revision.CONSTANTINOPLE,
    Opcode.CREATE2: Revision.CONSTANTINOPLE,
    Opcode.CHAINID: Revision.ISTANBUL,
    Opcode.SELFBALANCE: Revision.ISTANBUL,
    Opcode.BASEFEE: Revision.LONDON,
}


@lru_cache(maxsize=None)
def instruction_names(rev: Revision) -> tuple[Optional[str], ...]:
    """Return the 256 instruction names of a revision; None where undefined."""
    names: list[Optional[str]] = [None] * 256
    for op in Opcode:
        if _INTRODUCED_IN.get(op, Revision.FRONTIER) <= rev:
            names[op] = op.name
    return tuple(names)


@dataclass
class Message:
    """A message call or contract creation request."""

    kind: CallKind = CallKind.CALL
    is_static: bool = False
    depth: int = 0
    gas: int = 0
    destination: bytes = ZERO_ADDRESS
    sender: bytes = ZERO_ADDRESS
    input_data: bytes = b""
    value: int = 0
    create2_salt: bytes = ZERO_BYTES32


@dataclass
class TxContext:
    """Transaction and block information."""

    tx_gas_price: int = 0
    tx_origin: bytes = ZERO_ADDRESS
    block_coinbase: bytes = ZERO_ADDRESS
    block_number: int = 0
    block_timestamp: int = 0
    block_gas_limit: int = 0
    block_difficulty: int = 0
    chain_id: int = 0
    block_base_fee: int = 0


@dataclass
class Result:
    """The result of an execution or a nested call."""

    status_code: StatusCode = StatusCode.SUCCESS
    gas_left: int = 0
    output_data: bytes = b""
    create_address: bytes = ZERO_ADDRESS


class ExecutionError(Exception):
    """Raised when an instruction ends execution with a non-success status."""

    def __init__(self, status: StatusCode):
        super().__init__(status.name)
        self.status = status


@dataclass
class StorageValue:
    """A storage slot with its dirty flag and access status."""

    value: bytes = ZERO_BYTES32
    dirty: bool = False
    access_status: AccessStatus = AccessStatus.COLD


@dataclass
class Account:
    """An account kept by the in-memory host."""

    nonce: int = 0
    code: bytes = b""
    codehash: bytes = ZERO_BYTES32
    balance: int = 0
    storage: dict[bytes, StorageValue] = field(default_factory=dict)


@dataclass(frozen=True)
class LogRecord:
    """A log emitted during execution."""

    creator: bytes
    data: bytes
    topics: tuple[bytes, ...]


@dataclass(frozen=True)
class SelfdestructRecord:
    """A selfdestruct performed during execution."""

    selfdestructed: bytes
    beneficiary: bytes


class Host:
    """In-memory host holding accounts and recording every interaction."""

    def __init__(self) -> None:
        self.accounts: dict[bytes, Account] = {}
        self.tx_context = TxContext()
        self.block_hash: bytes = ZERO_BYTES32
        self.call_result = Result()
        self.recorded_calls: list[Message] = []
        self.recorded_blockhashes: list[int] = []
        self.recorded_logs: list[LogRecord] = []
        self.recorded_selfdestructs: list[SelfdestructRecord] = []
        self.recorded_account_accesses: list[bytes] = []

    def _record_account_access(self, address: bytes) -> None:
        if len(self.recorded_account_accesses) < _MAX_RECORDED_ACCOUNT_ACCESSES:
            self.recorded_account_accesses.append(address)

    def account_exists(self, address: bytes) -> bool:
        self._record_account_access(address)
        return address in self.accounts

    def get_storage(self, address: bytes, key: bytes) -> bytes:
        self._record_account_access(address)
        account = self.accounts.get(address)
        if account is None:
            return ZERO_BYTES32
        slot = account.storage.get(key)
        return slot.value if slot is not None else ZERO_BYTES32

    def set_storage(self, address: bytes, key: bytes, value: bytes) -> StorageStatus:
        self._record_account_access(address)
        account = self.accounts.setdefault(address, Account())
        slot = account.storage.setdefault(key, StorageValue())
        if slot.value == value:
            return StorageStatus.UNCHANGED
        if slot.dirty:
            status = StorageStatus.MODIFIED_AGAIN
        else:
            slot.dirty = True
            if not any(slot.value):
                status = StorageStatus.ADDED
            elif any(value):
                status = StorageStatus.MODIFIED
            else:
                status = StorageStatus.DELETED
        slot.value = value
        return status

    def get_balance(self, address: bytes) -> int:
        self._record_account_access(address)
        account = self.accounts.get(address)
        return account.balance if account is not None else 0

    def get_code_size(self, address: bytes) -> int:
        self._record_account_access(address)
        account = self.accounts.get(address)
        return len(account.code) if account is not None else 0

    def get_code_hash(self, address: bytes) -> bytes:
        self._record_account_access(address)
        account = self.accounts.get(address)
        return account.codehash if account is not None else ZERO_BYTES32

    def copy_code(self, address: bytes, code_offset: int, size: int) -> bytes:
        """Return up to ``size`` bytes of the account's code from ``code_offset``."""
        self._record_account_access(address)
        account = self.accounts.get(address)
        if account is None or code_offset >= len(account.code):
            return b""
        return account.code[code_offset:code_offset + size]

    def selfdestruct(self, address: bytes, beneficiary: bytes) -> None:
        self._record_account_access(address)
        self.recorded_selfdestructs.append(SelfdestructRecord(address, beneficiary))

    def call(self, msg: Message) -> Result:
        self._record_account_access(msg.destination)
        if len(self.recorded_calls) < _MAX_RECORDED_CALLS:
            self.recorded_calls.append(msg)
        return self.call_result

    def get_tx_context(self) -> TxContext:
        return self.tx_context

    def get_block_hash(self, number: int) -> bytes:
        self.recorded_blockhashes.append(number)
        return self.block_hash

    def emit_log(self, address: bytes, data: bytes, topics: Sequence[bytes]) -> None:
        self.recorded_logs.append(LogRecord(address, bytes(data), tuple(topics)))

    def access_account(self, address: bytes) -> AccessStatus:
        already_accessed = address in self.recorded_account_accesses
        self._record_account_access(address)
        # Precompiled contracts are always warm.
        if 1 <= int.from_bytes(address, "big") <= 9:
            return AccessStatus.WARM
        return AccessStatus.WARM if already_accessed else AccessStatus.COLD

    def access_storage(self, address: bytes, key: bytes) -> AccessStatus:
        account = self.accounts.setdefault(address, Account())
        slot = account.storage.setdefault(key, StorageValue())
        status = slot.access_status
        slot.access_status = AccessStatus.WARM
        return status