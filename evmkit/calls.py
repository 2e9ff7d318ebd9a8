"""Message call and contract creation instructions."""

from __future__ import annotations

from .arithmetic import check_memory, num_words
from .evmc import (
    ADDRESS_SIZE,
    BYTES32_SIZE,
    CallKind,
    ExecutionError,
    Message,
    Revision,
    StatusCode,
)
from .execution_state import ExecutionState
from .host_ops import ADDITIONAL_COLD_ACCOUNT_ACCESS_COST
from .evmc import AccessStatus

CALL_VALUE_COST = 9000
ACCOUNT_CREATION_COST = 25000
CALL_STIPEND = 2300
MAX_CALL_DEPTH = 1024

_INT64_MAX = (1 << 63) - 1
_ADDRESS_MASK = (1 << (8 * ADDRESS_SIZE)) - 1


def _memory_slice(state: ExecutionState, offset: int, size: int) -> bytes:
    return bytes(state.memory[offset:offset + size]) if size else b""


def call(state: ExecutionState, kind: CallKind, is_static: bool = False) -> None:
    """CALL, CALLCODE, DELEGATECALL and (with ``is_static``) STATICCALL.

    Pushes 1 on success of the nested call and 0 otherwise.
    """
    stack = state.stack
    gas = stack.pop()
    dst = (stack.pop() & _ADDRESS_MASK).to_bytes(ADDRESS_SIZE, "big")
    value = 0 if is_static or kind == CallKind.DELEGATECALL else stack.pop()
    has_value = value != 0
    input_offset = stack.pop()
    input_size = stack.pop()
    output_offset = stack.pop()
    output_size = stack.pop()

    stack.push(0)  # Assume failure.

    if state.rev >= Revision.BERLIN and state.host.access_account(dst) == AccessStatus.COLD:
        state.consume_gas(ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)

    check_memory(state, input_offset, input_size)
    check_memory(state, output_offset, output_size)

    delegated = kind == CallKind.DELEGATECALL
    msg = Message(
        kind=kind,
        is_static=True if is_static else state.msg.is_static,
        depth=state.msg.depth + 1,
        destination=dst,
        sender=state.msg.sender if delegated else state.msg.destination,
        value=state.msg.value if delegated else value,
        input_data=_memory_slice(state, input_offset, input_size),
    )

    cost = CALL_VALUE_COST if has_value else 0
    if kind == CallKind.CALL and not is_static:
        if has_value and state.msg.is_static:
            raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)
        if (has_value or state.rev < Revision.SPURIOUS_DRAGON) and not state.host.account_exists(
            dst
        ):
            cost += ACCOUNT_CREATION_COST
    state.consume_gas(cost)

    msg.gas = min(gas, _INT64_MAX)
    if state.rev >= Revision.TANGERINE_WHISTLE:
        msg.gas = min(msg.gas, state.gas_left - state.gas_left // 64)
    elif msg.gas > state.gas_left:
        raise ExecutionError(StatusCode.OUT_OF_GAS)

    if has_value:
        msg.gas += CALL_STIPEND
        state.gas_left += CALL_STIPEND

    state.return_data = b""

    if state.msg.depth >= MAX_CALL_DEPTH:
        return
    if has_value and state.host.get_balance(state.msg.destination) < value:
        return

    result = state.host.call(msg)
    state.return_data = bytes(result.output_data)
    stack.top = int(result.status_code == StatusCode.SUCCESS)

    copy_size = min(output_size, len(result.output_data))
    if copy_size > 0:
        state.memory[output_offset:output_offset + copy_size] = result.output_data[:copy_size]

    state.gas_left -= msg.gas - result.gas_left


def create(state: ExecutionState, kind: CallKind) -> None:
    """CREATE and CREATE2: pushes the new address, or 0 when the creation fails."""
    if state.msg.is_static:
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)

    stack = state.stack
    endowment = stack.pop()
    init_code_offset = stack.pop()
    init_code_size = stack.pop()

    check_memory(state, init_code_offset, init_code_size)

    salt = 0
    if kind == CallKind.CREATE2:
        salt = stack.pop()
        state.consume_gas(num_words(init_code_size) * 6)

    stack.push(0)
    state.return_data = b""

    if state.msg.depth >= MAX_CALL_DEPTH:
        return
    if endowment != 0 and state.host.get_balance(state.msg.destination) < endowment:
        return

    gas = state.gas_left
    if state.rev >= Revision.TANGERINE_WHISTLE:
        gas -= gas // 64

    msg = Message(
        kind=kind,
        gas=gas,
        depth=state.msg.depth + 1,
        sender=state.msg.destination,
        input_data=_memory_slice(state, init_code_offset, init_code_size),
        value=endowment,
        create2_salt=salt.to_bytes(BYTES32_SIZE, "big"),
    )

    result = state.host.call(msg)
    state.gas_left -= msg.gas - result.gas_left
    state.return_data = bytes(result.output_data)
    if result.status_code == StatusCode.SUCCESS:
        stack.top = int.from_bytes(result.create_address, "big")