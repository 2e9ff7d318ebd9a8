"""Stack, arithmetic, memory and hashing instructions of the EVM."""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

from .evmc import ExecutionError, Revision, StatusCode
from .execution_state import WORD_MASK, ExecutionState, Stack

MAX_BUFFER_SIZE = (1 << 32) - 1
WORD_SIZE = 32

_SIGN_BIT = 1 << 255


def _to_signed(value: int) -> int:
    return value - (1 << 256) if value & _SIGN_BIT else value


def num_words(size_in_bytes: int) -> int:
    """Return the number of 32-byte words needed to hold ``size_in_bytes`` bytes."""
    return (size_in_bytes + WORD_SIZE - 1) // WORD_SIZE


def _memory_cost(words: int) -> int:
    return 3 * words + words * words // 512


def check_memory(state: ExecutionState, offset: int, size: int) -> None:
    """Expand memory to cover ``[offset, offset + size)`` and charge for the growth.

    Raises ExecutionError(OUT_OF_GAS) when the region is out of range or gas runs out.
    """
    if size == 0:
        return
    if size > MAX_BUFFER_SIZE or offset > MAX_BUFFER_SIZE:
        raise ExecutionError(StatusCode.OUT_OF_GAS)

    new_size = offset + size
    current_size = len(state.memory)
    if new_size > current_size:
        new_words = num_words(new_size)
        current_words = current_size // WORD_SIZE
        state.consume_gas(_memory_cost(new_words) - _memory_cost(current_words))
        state.memory.extend(bytes(new_words * WORD_SIZE - current_size))


def add(stack: Stack) -> None:
    stack.top = stack.pop() + stack.top


def mul(stack: Stack) -> None:
    stack.top = stack.pop() * stack.top


def sub(stack: Stack) -> None:
    stack[1] = stack[0] - stack[1]
    stack.pop()


def div(stack: Stack) -> None:
    divisor = stack[1]
    stack[1] = stack[0] // divisor if divisor != 0 else 0
    stack.pop()


def _sdivrem(x: int, y: int) -> tuple[int, int]:
    sx, sy = _to_signed(x), _to_signed(y)
    quot = abs(sx) // abs(sy)
    if (sx < 0) != (sy < 0):
        quot = -quot
    rem = abs(sx) % abs(sy)
    if sx < 0:
        rem = -rem
    return quot, rem


def sdiv(stack: Stack) -> None:
    divisor = stack[1]
    stack[1] = _sdivrem(stack[0], divisor)[0] if divisor != 0 else 0
    stack.pop()


def mod(stack: Stack) -> None:
    divisor = stack[1]
    stack[1] = stack[0] % divisor if divisor != 0 else 0
    stack.pop()


def smod(stack: Stack) -> None:
    divisor = stack[1]
    stack[1] = _sdivrem(stack[0], divisor)[1] if divisor != 0 else 0
    stack.pop()


def addmod(stack: Stack) -> None:
    x = stack.pop()
    y = stack.pop()
    m = stack.top
    stack.top = (x + y) % m if m != 0 else 0


def mulmod(stack: Stack) -> None:
    x = stack.pop()
    y = stack.pop()
    m = stack.top
    stack.top = (x * y) % m if m != 0 else 0


def exp(state: ExecutionState) -> None:
    """EXP: charges a per-byte fee for the exponent, then raises to the power."""
    stack = state.stack
    base = stack.pop()
    exponent = stack.top
    significant_bytes = (exponent.bit_length() + 7) // 8
    byte_cost = 50 if state.rev >= Revision.SPURIOUS_DRAGON else 10
    state.consume_gas(significant_bytes * byte_cost)
    stack.top = pow(base, exponent, 1 << 256)


def signextend(stack: Stack) -> None:
    ext = stack.pop()
    if ext < 31:
        sign_bit = ext * 8 + 7
        sign_mask = 1 << sign_bit
        value_mask = sign_mask - 1
        x = stack.top
        stack.top = x | (~value_mask & WORD_MASK) if x & sign_mask else x & value_mask


def lt(stack: Stack) -> None:
    x = stack.pop()
    stack[0] = int(x < stack[0])


def gt(stack: Stack) -> None:
    x = stack.pop()
    stack[0] = int(stack[0] < x)


def slt(stack: Stack) -> None:
    x = stack.pop()
    stack[0] = int(_to_signed(x) < _to_signed(stack[0]))


def sgt(stack: Stack) -> None:
    x = stack.pop()
    stack[0] = int(_to_signed(stack[0]) < _to_signed(x))


def eq(stack: Stack) -> None:
    stack[1] = int(stack[0] == stack[1])
    stack.pop()


def iszero(stack: Stack) -> None:
    stack.top = int(stack.top == 0)


def and_(stack: Stack) -> None:
    stack.top = stack.pop() & stack.top


def or_(stack: Stack) -> None:
    stack.top = stack.pop() | stack.top


def xor_(stack: Stack) -> None:
    stack.top = stack.pop() ^ stack.top


def not_(stack: Stack) -> None:
    stack.top = ~stack.top & WORD_MASK


def byte(stack: Stack) -> None:
    n = stack.pop()
    if n > 31:
        stack.top = 0
    else:
        stack.top = (stack.top >> ((31 - n) * 8)) & 0xFF


def shl(stack: Stack) -> None:
    shift = stack.pop()
    stack.top = stack.top << shift if shift < 256 else 0


def shr(stack: Stack) -> None:
    shift = stack.pop()
    stack.top = stack.top >> shift if shift < 256 else 0


def sar(stack: Stack) -> None:
    if not stack[1] & _SIGN_BIT:
        shr(stack)
        return
    shift = stack.pop()
    stack.top = _to_signed(stack.top) >> min(shift, 256)


def pop(stack: Stack) -> None:
    stack.pop()


def dup(stack: Stack, n: int) -> None:
    """DUPn: push a copy of the n-th item from the top (1-based)."""
    if not 1 <= n <= 16:
        raise ValueError(f"invalid DUP depth {n}")
    stack.push(stack[n - 1])


def swap(stack: Stack, n: int) -> None:
    """SWAPn: exchange the top item with the item n positions below it."""
    if not 1 <= n <= 16:
        raise ValueError(f"invalid SWAP depth {n}")
    stack[0], stack[n] = stack[n], stack[0]


def mload(state: ExecutionState) -> None:
    index = state.stack.top
    check_memory(state, index, WORD_SIZE)
    state.stack.top = int.from_bytes(state.memory[index:index + WORD_SIZE], "big")


def mstore(state: ExecutionState) -> None:
    index = state.stack.pop()
    value = state.stack.pop()
    check_memory(state, index, WORD_SIZE)
    state.memory[index:index + WORD_SIZE] = value.to_bytes(WORD_SIZE, "big")


def mstore8(state: ExecutionState) -> None:
    index = state.stack.pop()
    value = state.stack.pop()
    check_memory(state, index, 1)
    state.memory[index] = value & 0xFF


def msize(state: ExecutionState) -> None:
    state.stack.push(len(state.memory))


def keccak256(state: ExecutionState) -> None:
    """KECCAK256: hash a memory region, charging 6 gas per word."""
    index = state.stack.pop()
    size = state.stack.top
    check_memory(state, index, size)
    state.consume_gas(num_words(size) * 6)
    data = bytes(state.memory[index:index + size]) if size else b""
    digest = _keccak.new(digest_bits=256, data=data).digest()
    state.stack.top = int.from_bytes(digest, "big")