"""The EVM word stack and the generic execution state."""

from __future__ import annotations

from typing import Optional

from .evmc import ExecutionError, Host, Message, Revision, StatusCode

WORD_MASK = (1 << 256) - 1


class Stack:
    """The stack of 256-bit EVM words, indexed from the top."""

    limit = 1024

    def __init__(self) -> None:
        self._items: list[int] = []

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> int:
        """Return the item ``index`` positions below the top."""
        return self._items[-1 - index]

    def __setitem__(self, index: int, value: int) -> None:
        self._items[-1 - index] = value & WORD_MASK

    @property
    def top(self) -> int:
        return self._items[-1]

    @top.setter
    def top(self, value: int) -> None:
        self._items[-1] = value & WORD_MASK

    def push(self, item: int) -> None:
        """Push an item, wrapped to 256 bits. The stack limit is not checked."""
        self._items.append(item & WORD_MASK)

    def pop(self) -> int:
        return self._items.pop()

    def clear(self) -> None:
        self._items.clear()


class ExecutionState:
    """Generic execution state shared by instruction implementations."""

    def __init__(
        self,
        message: Optional[Message] = None,
        revision: Revision = Revision.FRONTIER,
        host: Optional[Host] = None,
        code: bytes = b"",
    ) -> None:
        self.stack = Stack()
        self.memory = bytearray()
        self._assign(message, revision, host, code)

    def _assign(self, message, revision, host, code) -> None:
        self.gas_left = message.gas if message is not None else 0
        self.msg = message
        self.host = host
        self.rev = revision
        self.return_data = b""
        self.code = bytes(code)
        self.status = StatusCode.SUCCESS
        self.output_offset = 0
        self.output_size = 0

    def reset(self, message: Message, revision: Revision, host: Host, code: bytes) -> None:
        """Reset the state so that it can be reused for another execution."""
        self.stack.clear()
        self.memory.clear()
        self._assign(message, revision, host, code)

    def consume_gas(self, amount: int) -> None:
        """Charge gas; raise ExecutionError(OUT_OF_GAS) when it runs below zero."""
        self.gas_left -= amount
        if self.gas_left < 0:
            raise ExecutionError(StatusCode.OUT_OF_GAS)