"""Execution tracers and the VM object that owns them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, TextIO

from .evmc import Message, Result, Revision, instruction_names


class Tracer(ABC):
    """A tracer in a chain; notifications pass to every tracer in order."""

    def __init__(self) -> None:
        self._next_tracer: Optional[Tracer] = None

    def _chain(self) -> Iterator[Tracer]:
        tracer: Optional[Tracer] = self
        while tracer is not None:
            yield tracer
            tracer = tracer._next_tracer

    def notify_execution_start(self, rev: Revision, msg: Message, code: bytes) -> None:
        for tracer in self._chain():
            tracer.on_execution_start(rev, msg, code)

    def notify_instruction_start(self, pc: int) -> None:
        for tracer in self._chain():
            tracer.on_instruction_start(pc)

    def notify_execution_end(self, result: Result) -> None:
        for tracer in self._chain():
            tracer.on_execution_end(result)

    @abstractmethod
    def on_execution_start(self, rev: Revision, msg: Message, code: bytes) -> None:
        """Called when an execution begins."""

    @abstractmethod
    def on_instruction_start(self, pc: int) -> None:
        """Called before the instruction at ``pc`` runs."""

    @abstractmethod
    def on_execution_end(self, result: Result) -> None:
        """Called when an execution finishes."""


def _opcode_name(names: Sequence[Optional[str]], opcode: int) -> str:
    name = names[opcode]
    return name if name is not None else f"0x{opcode:02x}"


@dataclass
class _HistogramContext:
    depth: int
    code: bytes
    names: Sequence[Optional[str]]
    counts: Counter = field(default_factory=Counter)


class HistogramTracer(Tracer):
    """Counts executed opcodes per call depth and writes a CSV report per execution."""

    def __init__(self, out: TextIO) -> None:
        super().__init__()
        self._out = out
        self._contexts: list[_HistogramContext] = []

    def on_execution_start(self, rev: Revision, msg: Message, code: bytes) -> None:
        self._contexts.append(_HistogramContext(msg.depth, bytes(code), instruction_names(rev)))

    def on_instruction_start(self, pc: int) -> None:
        ctx = self._contexts[-1]
        ctx.counts[ctx.code[pc]] += 1

    def on_execution_end(self, result: Result) -> None:
        ctx = self._contexts.pop()
        lines = [f"--- # HISTOGRAM depth={ctx.depth}", "opcode,count"]
        lines += [
            f"{_opcode_name(ctx.names, opcode)},{count}"
            for opcode, count in sorted(ctx.counts.items())
            if count
        ]
        self._out.write("\n".join(lines) + "\n")


def create_histogram_tracer(out: TextIO) -> HistogramTracer:
    """Create a tracer reporting opcode occurrence counts in CSV format to ``out``."""
    return HistogramTracer(out)


class VM:
    """The virtual machine instance holding a chain of tracers."""

    def __init__(self) -> None:
        self._first_tracer: Optional[Tracer] = None

    def add_tracer(self, tracer: Tracer) -> None:
        """Append a tracer at the end of the chain."""
        if self._first_tracer is None:
            self._first_tracer = tracer
            return
        last = self._first_tracer
        while last._next_tracer is not None:
            last = last._next_tracer
        last._next_tracer = tracer

    @property
    def tracer(self) -> Optional[Tracer]:
        """The first tracer of the chain, or None."""
        return self._first_tracer

    def tracers(self) -> Iterator[Tracer]:
        """Iterate the tracers in the order they were added."""
        if self._first_tracer is not None:
            yield from self._first_tracer._chain()