"""EVM instructions that read or change state held by the host."""

from __future__ import annotations

from .arithmetic import MAX_BUFFER_SIZE, WORD_SIZE, check_memory, num_words
from .evmc import (
    ADDRESS_SIZE,
    BYTES32_SIZE,
    ZERO_BYTES32,
    AccessStatus,
    ExecutionError,
    Revision,
    StatusCode,
    StorageStatus,
)
from .execution_state import ExecutionState, Stack

COLD_SLOAD_COST = 2100
WARM_STORAGE_READ_COST = 100
COLD_ACCOUNT_ACCESS_COST = 2600
ADDITIONAL_COLD_ACCOUNT_ACCESS_COST = COLD_ACCOUNT_ACCESS_COST - WARM_STORAGE_READ_COST

_ADDRESS_MASK = (1 << (8 * ADDRESS_SIZE)) - 1
_UINT64_MASK = (1 << 64) - 1


def _to_address(value: int) -> bytes:
    return (value & _ADDRESS_MASK).to_bytes(ADDRESS_SIZE, "big")


def _to_bytes32(value: int) -> bytes:
    return value.to_bytes(BYTES32_SIZE, "big")


def _load(data: bytes) -> int:
    return int.from_bytes(data, "big")


def _pop(stack: Stack, count: int) -> tuple[int, ...]:
    return tuple(stack.pop() for _ in range(count))


def _require_non_static(state: ExecutionState) -> None:
    if state.msg.is_static:
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)


def _charge_account_access(state: ExecutionState, addr: bytes, cost: int) -> None:
    if state.rev >= Revision.BERLIN and state.host.access_account(addr) == AccessStatus.COLD:
        state.consume_gas(cost)


def _copy_into_memory(state: ExecutionState, dst: int, data: bytes, size: int) -> None:
    """Write ``data`` at ``dst`` and zero-fill the rest of the ``size`` bytes."""
    if size:
        state.memory[dst:dst + size] = bytes(data).ljust(size, b"\x00")


def address(state: ExecutionState) -> None:
    state.stack.push(_load(state.msg.destination))


def balance(state: ExecutionState) -> None:
    addr = _to_address(state.stack.top)
    _charge_account_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    state.stack.top = state.host.get_balance(addr)


def origin(state: ExecutionState) -> None:
    state.stack.push(_load(state.host.get_tx_context().tx_origin))


def caller(state: ExecutionState) -> None:
    state.stack.push(_load(state.msg.sender))


def callvalue(state: ExecutionState) -> None:
    state.stack.push(state.msg.value)


def calldataload(state: ExecutionState) -> None:
    index = state.stack.top
    data = state.msg.input_data
    if index > len(data):
        state.stack.top = 0
    else:
        chunk = data[index:index + WORD_SIZE]
        state.stack.top = _load(chunk.ljust(WORD_SIZE, b"\x00"))


def calldatasize(state: ExecutionState) -> None:
    state.stack.push(len(state.msg.input_data))


def calldatacopy(state: ExecutionState) -> None:
    mem_index, input_index, size = _pop(state.stack, 3)
    check_memory(state, mem_index, size)
    data = state.msg.input_data
    src = min(len(data), input_index)
    state.consume_gas(num_words(size) * 3)
    _copy_into_memory(state, mem_index, data[src:src + size], size)


def codesize(state: ExecutionState) -> None:
    state.stack.push(len(state.code))


def codecopy(state: ExecutionState) -> None:
    mem_index, input_index, size = _pop(state.stack, 3)
    check_memory(state, mem_index, size)
    code = state.code
    src = min(len(code), input_index)
    state.consume_gas(num_words(size) * 3)
    _copy_into_memory(state, mem_index, code[src:src + size], size)


def gasprice(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().tx_gas_price)


def basefee(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().block_base_fee)


def extcodesize(state: ExecutionState) -> None:
    addr = _to_address(state.stack.top)
    _charge_account_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    state.stack.top = state.host.get_code_size(addr)


def extcodecopy(state: ExecutionState) -> None:
    addr = _to_address(state.stack.pop())
    mem_index, input_index, size = _pop(state.stack, 3)
    check_memory(state, mem_index, size)
    src = min(MAX_BUFFER_SIZE, input_index)
    state.consume_gas(num_words(size) * 3)
    _charge_account_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    data = state.host.copy_code(addr, src, size)
    _copy_into_memory(state, mem_index, data, size)


def returndatasize(state: ExecutionState) -> None:
    state.stack.push(len(state.return_data))


def returndatacopy(state: ExecutionState) -> None:
    mem_index, input_index, size = _pop(state.stack, 3)
    check_memory(state, mem_index, size)
    return_data = state.return_data
    if input_index > len(return_data) or input_index + size > len(return_data):
        raise ExecutionError(StatusCode.INVALID_MEMORY_ACCESS)
    state.consume_gas(num_words(size) * 3)
    _copy_into_memory(state, mem_index, return_data[input_index:input_index + size], size)


def extcodehash(state: ExecutionState) -> None:
    addr = _to_address(state.stack.top)
    _charge_account_access(state, addr, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)
    state.stack.top = _load(state.host.get_code_hash(addr))


def blockhash(state: ExecutionState) -> None:
    """BLOCKHASH: only the 256 most recent blocks have a known hash."""
    number = state.stack.top
    upper_bound = state.host.get_tx_context().block_number
    lower_bound = max(upper_bound - 256, 0)
    if lower_bound <= number < upper_bound:
        header = state.host.get_block_hash(number)
    else:
        header = ZERO_BYTES32
    state.stack.top = _load(header)


def coinbase(state: ExecutionState) -> None:
    state.stack.push(_load(state.host.get_tx_context().block_coinbase))


def timestamp(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().block_timestamp & _UINT64_MASK)


def number(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().block_number & _UINT64_MASK)


def difficulty(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().block_difficulty)


def gaslimit(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().block_gas_limit & _UINT64_MASK)


def chainid(state: ExecutionState) -> None:
    state.stack.push(state.host.get_tx_context().chain_id)


def selfbalance(state: ExecutionState) -> None:
    state.stack.push(state.host.get_balance(state.msg.destination))


def sload(state: ExecutionState) -> None:
    key = _to_bytes32(state.stack.top)
    if (
        state.rev >= Revision.BERLIN
        and state.host.access_storage(state.msg.destination, key) == AccessStatus.COLD
    ):
        # The warm read cost is already part of the base instruction cost.
        state.consume_gas(COLD_SLOAD_COST - WARM_STORAGE_READ_COST)
    state.stack.top = _load(state.host.get_storage(state.msg.destination, key))


def sstore(state: ExecutionState) -> None:
    """SSTORE: write the slot first, then charge according to the effect of the write."""
    _require_non_static(state)
    if state.rev >= Revision.ISTANBUL and state.gas_left <= 2300:
        raise ExecutionError(StatusCode.OUT_OF_GAS)

    key = _to_bytes32(state.stack.pop())
    value = _to_bytes32(state.stack.pop())

    cost = 0
    if (
        state.rev >= Revision.BERLIN
        and state.host.access_storage(state.msg.destination, key) == AccessStatus.COLD
    ):
        cost = COLD_SLOAD_COST

    status = state.host.set_storage(state.msg.destination, key, value)

    if status in (StorageStatus.UNCHANGED, StorageStatus.MODIFIED_AGAIN):
        if state.rev >= Revision.BERLIN:
            cost += WARM_STORAGE_READ_COST
        elif state.rev == Revision.ISTANBUL:
            cost = 800
        elif state.rev == Revision.CONSTANTINOPLE:
            cost = 200
        else:
            cost = 5000
    elif status in (StorageStatus.MODIFIED, StorageStatus.DELETED):
        if state.rev >= Revision.BERLIN:
            cost += 5000 - COLD_SLOAD_COST
        else:
            cost = 5000
    elif status == StorageStatus.ADDED:
        cost += 20000

    state.consume_gas(cost)


def log(state: ExecutionState, num_topics: int) -> None:
    """LOGn: emit the memory region with ``num_topics`` topics taken from the stack."""
    _require_non_static(state)
    offset, size = _pop(state.stack, 2)
    check_memory(state, offset, size)
    state.consume_gas(size * 8)
    topics = [_to_bytes32(state.stack.pop()) for _ in range(num_topics)]
    data = bytes(state.memory[offset:offset + size]) if size else b""
    state.host.emit_log(state.msg.destination, data, topics)


def selfdestruct(state: ExecutionState) -> None:
    _require_non_static(state)
    beneficiary = _to_address(state.stack[0])

    _charge_account_access(state, beneficiary, COLD_ACCOUNT_ACCESS_COST)

    if state.rev >= Revision.TANGERINE_WHISTLE:
        sends_value = state.rev == Revision.TANGERINE_WHISTLE or state.host.get_balance(
            state.msg.destination
        )
        if sends_value and not state.host.account_exists(beneficiary):
            state.consume_gas(25000)

    state.host.selfdestruct(state.msg.destination, beneficiary)