# evmkit

Building blocks for an Ethereum Virtual Machine in plain Python: a 256-bit word
stack, expandable memory with its gas accounting, the semantics of the individual
instructions with their revision-dependent gas rules (Frontier to London), an
in-memory host that records every interaction, and a tracer chain with an opcode
histogram.

## Installation

```
pip install evmkit
```

To run the test suite:

```
pip install "evmkit[test]"
pytest
```

## Modules

- `evmkit.evmc` holds the shared types: `Revision`, `StatusCode`, `CallKind`,
  `AccessStatus`, `StorageStatus`, `Opcode`, `Message`, `TxContext`, `Result`,
  the `ExecutionError` exception and `Host`. `instruction_names(rev)` returns the
  256 opcode names defined in a revision (`None` where undefined).
- `evmkit.execution_state` provides `Stack` and `ExecutionState`.
  - `Stack` is indexed from the top (`stack[0]` is the top item), has a `top`
    property, and wraps every stored value to 256 bits. `Stack.limit` is 1024,
    but `push` does not enforce it.
  - `ExecutionState` holds the stack, a `bytearray` memory, `gas_left`, the
    message, revision, host, code, return data and output range. `reset(...)`
    reuses it; `consume_gas(amount)` charges gas and raises
    `ExecutionError(OUT_OF_GAS)` when it runs below zero.
- `evmkit.arithmetic` holds the arithmetic, comparison, bitwise, shift,
  `POP`/`DUP`/`SWAP`, memory (`mload`, `mstore`, `mstore8`, `msize`) and
  `keccak256` instructions, plus `num_words` and `check_memory`, which grows
  memory and charges for the expansion.
- `evmkit.host_ops` holds the instructions that read or change the environment:
  account queries, call data, code and return data copies, block context, `sload`,
  `sstore`, `log(state, num_topics)` and `selfdestruct`, including the EIP-2929
  warm/cold access costs from Berlin on.
- `evmkit.calls` implements `call(state, kind, is_static=False)` for `CALL`,
  `CALLCODE`, `DELEGATECALL` and `STATICCALL`, and `create(state, kind)` for
  `CREATE` and `CREATE2`.
- `evmkit.tracing` provides the abstract `Tracer`, `HistogramTracer`
  (`create_histogram_tracer(out)`), and `VM`, which keeps a chain of tracers
  (`add_tracer`, the `tracer` property and the `tracers()` iterator).

## Usage

Each instruction is a function that works on a `Stack` or an `ExecutionState`:

```python
from evmkit import arithmetic
from evmkit.evmc import Host, Message, Revision
from evmkit.execution_state import ExecutionState, Stack

stack = Stack()
stack.push(2)
stack.push(3)
arithmetic.add(stack)
assert stack.top == 5

state = ExecutionState(Message(gas=100), Revision.LONDON, Host())
state.stack.push(0xFF)  # value
state.stack.push(0)     # memory offset
arithmetic.mstore(state)
assert len(state.memory) == 32
assert state.gas_left == 97  # one word of memory expansion
```

## Errors

An instruction that fails raises `ExecutionError`; its `status` attribute is the
`StatusCode`, for example `OUT_OF_GAS`, `INVALID_MEMORY_ACCESS` or
`STATIC_MODE_VIOLATION`. `dup` and `swap` raise `ValueError` for a depth outside
1–16.

## The host

`Host` is an in-memory host. It keeps `accounts` (address to `Account`, with
balance, code, code hash and storage), a `tx_context`, a single `block_hash`
returned for every block, and a `call_result` returned for every nested call. It
records what the instructions do in `recorded_calls`, `recorded_blockhashes`,
`recorded_logs`, `recorded_selfdestructs` and `recorded_account_accesses`.
`access_account` reports an address as warm once it has been accessed, and
treats addresses 1 to 9 as always warm. Subclass it and override methods to
connect other state.

## Histogram tracing

Create a tracer with `create_histogram_tracer(out)` and add it with
`VM.add_tracer`. Whoever drives the execution calls `notify_execution_start`,
`notify_instruction_start(pc)` and `notify_execution_end` on the first tracer;
each notification passes along the chain. At the end of each execution the
histogram tracer writes a CSV section to `out`, with opcodes in numeric order and
undefined opcodes shown in hex:

```
--- # HISTOGRAM depth=0
opcode,count
PUSH1,2
SSTORE,1
```

## What it does not do

evmkit has no interpreter loop: nothing decodes bytecode, dispatches
instructions, charges the base cost of each instruction, checks stack limits,
or implements `STOP`, `JUMP`, `JUMPI`, `JUMPDEST`, `PC`, `GAS`, `PUSH`, `RETURN`
or `REVERT`. `VM` only holds tracers; it does not execute code. Nested calls go
to `Host.call` and are not executed by the package.