import pytest

from evmkit import host_ops
from evmkit.evmc import (
    Account,
    ExecutionError,
    Host,
    Message,
    Revision,
    StatusCode,
    StorageValue,
)
from evmkit.execution_state import ExecutionState

DEST = bytes(19) + b"\x5e"
SENDER = bytes(19) + b"\xc0"
ADDR_A = bytes(19) + b"\x0a"


def make_state(rev=Revision.ISTANBUL, gas=1_000_000, code=b"", **msg_fields):
    msg = Message(gas=gas, destination=DEST, sender=SENDER, **msg_fields)
    return ExecutionState(msg, rev, Host(), code)


def push_all(state, *items):
    """Push items so that the first one ends up on top."""
    for item in reversed(items):
        state.stack.push(item)


def as_int(data):
    return int.from_bytes(data, "big")


def test_address_caller_callvalue():
    state = make_state(value=1234)
    host_ops.address(state)
    host_ops.caller(state)
    host_ops.callvalue(state)
    assert state.stack[0] == 1234
    assert state.stack[1] == as_int(SENDER)
    assert state.stack[2] == as_int(DEST)


def test_balance_cold_then_warm_in_berlin():
    state = make_state(Revision.BERLIN)
    state.host.accounts[ADDR_A] = Account(balance=0x0504030201)
    start = state.gas_left
    push_all(state, as_int(ADDR_A))
    host_ops.balance(state)
    assert state.stack.top == 0x0504030201
    assert start - state.gas_left == host_ops.ADDITIONAL_COLD_ACCOUNT_ACCESS_COST

    middle = state.gas_left
    push_all(state, as_int(ADDR_A))
    host_ops.balance(state)
    assert state.gas_left == middle


def test_balance_cold_out_of_gas():
    state = make_state(Revision.BERLIN, gas=host_ops.ADDITIONAL_COLD_ACCOUNT_ACCESS_COST - 1)
    push_all(state, as_int(ADDR_A))
    with pytest.raises(ExecutionError) as err:
        host_ops.balance(state)
    assert err.value.status == StatusCode.OUT_OF_GAS


def test_balance_before_berlin_is_not_charged():
    state = make_state(Revision.ISTANBUL)
    start = state.gas_left
    push_all(state, as_int(ADDR_A))
    host_ops.balance(state)
    assert state.gas_left == start
    assert state.stack.top == 0


def test_calldataload():
    data = bytes(range(1, 41))
    state = make_state(input_data=data)
    push_all(state, 0)
    host_ops.calldataload(state)
    assert state.stack.top == as_int(data[:32])

    push_all(state, 30)
    host_ops.calldataload(state)
    assert state.stack.top == as_int(data[30:] + bytes(22))

    push_all(state, len(data) + 1)
    host_ops.calldataload(state)
    assert state.stack.top == 0


def test_calldatasize_and_copy():
    data = b"\x11\x22\x33"
    state = make_state(input_data=data)
    host_ops.calldatasize(state)
    assert state.stack.pop() == len(data)

    push_all(state, 0, 1, 4)
    host_ops.calldatacopy(state)
    assert bytes(state.memory[:4]) == b"\x22\x33\x00\x00"
    assert len(state.memory) % 32 == 0


CODE = bytes(range(0x40, 0x53))


@pytest.mark.parametrize(
    "index, size, expected",
    [
        (0x00, 0x13, CODE),
        (0x00, 0x12, CODE[:0x12]),
        (0x00, 0x14, CODE + b"\x00"),
        (0x13, 0x00, b""),
        (0x14, 0x00, b""),
        (0x12, 0x00, b""),
        (0x13, 0x01, b"\x00"),
        (0x14, 0x01, b"\x00"),
        (0x12, 0x01, CODE[0x12:0x13]),
    ],
)
def test_codecopy_combinations(index, size, expected):
    state = make_state(code=CODE)
    push_all(state, 0, index, size)
    host_ops.codecopy(state)
    assert bytes(state.memory[:size]) == expected


def test_codesize():
    state = make_state(code=CODE)
    host_ops.codesize(state)
    assert state.stack.top == len(CODE)


def test_codecopy_empty_allocates_nothing():
    state = make_state(code=CODE)
    push_all(state, 0, 0, 0)
    host_ops.codecopy(state)
    assert len(state.memory) == 0
    assert len(state.stack) == 0


def test_extcodesize():
    state = make_state()
    addr = bytes(19) + b"\x02"
    state.host.accounts[addr] = Account(code=b"\x00")
    push_all(state, as_int(addr))
    host_ops.extcodesize(state)
    assert state.stack.top == 1


def test_extcodecopy_fill_tail():
    state = make_state()
    state.host.accounts[ADDR_A] = Account(code=b"\xff")
    push_all(state, as_int(ADDR_A), 0, 0, 2)
    host_ops.extcodecopy(state)
    assert bytes(state.memory[:2]) == b"\xff\x00"
    assert state.host.recorded_account_accesses == [ADDR_A]


def test_extcodecopy_nonzero_index():
    state = make_state()
    code = bytearray(16)
    code[15] = 0xC0
    state.host.accounts[ADDR_A] = Account(code=bytes(code))
    push_all(state, as_int(ADDR_A), 0, 15, 2)
    host_ops.extcodecopy(state)
    assert bytes(state.memory[:2]) == b"\xc0\x00"


def test_extcodecopy_big_index():
    state = make_state()
    state.host.accounts[bytes(20)] = Account(code=b"\xab")
    push_all(state, 0, 0, (1 << 32), 1)
    host_ops.extcodecopy(state)
    assert bytes(state.memory[:1]) == b"\x00"


def test_extcodehash():
    state = make_state(Revision.CONSTANTINOPLE)
    state.host.accounts[bytes(20)] = Account(codehash=b"\xee" * 32)
    push_all(state, 0)
    host_ops.extcodehash(state)
    assert state.stack.top == as_int(b"\xee" * 32)


def test_returndatasize_and_copy():
    state = make_state()
    state.return_data = b"\x01\x02\x03"
    host_ops.returndatasize(state)
    assert state.stack.pop() == 3
    push_all(state, 0, 1, 2)
    host_ops.returndatacopy(state)
    assert bytes(state.memory[:2]) == b"\x02\x03"


@pytest.mark.parametrize("index, size", [(4, 0), (2, 2), (0, 4)])
def test_returndatacopy_out_of_bounds(index, size):
    state = make_state()
    state.return_data = b"\x01\x02\x03"
    push_all(state, 0, index, size)
    with pytest.raises(ExecutionError) as err:
        host_ops.returndatacopy(state)
    assert err.value.status == StatusCode.INVALID_MEMORY_ACCESS


@pytest.mark.parametrize(
    "block_number, expect_hash, recorded",
    [(0, False, []), (257, False, []), (256, True, [0])],
)
def test_blockhash(block_number, expect_hash, recorded):
    state = make_state()
    block_hash = bytearray(32)
    block_hash[13] = 0x13
    state.host.block_hash = bytes(block_hash)
    state.host.tx_context.block_number = block_number
    push_all(state, 0)
    host_ops.blockhash(state)
    assert state.stack.top == (as_int(block_hash) if expect_hash else 0)
    assert state.host.recorded_blockhashes == recorded


def test_tx_context_values():
    state = make_state()
    ctx = state.host.tx_context
    ctx.block_timestamp = 0xDD
    ctx.block_number = 0x1100
    ctx.block_gas_limit = 0x990000
    ctx.chain_id = 0xAA
    ctx.block_coinbase = bytes(1) + b"\xcc" + bytes(18)
    ctx.tx_origin = bytes(2) + b"\x55" + bytes(17)
    ctx.block_difficulty = 0xDD << 8
    ctx.tx_gas_price = 0x66
    ctx.block_base_fee = 0x07

    for fn in (
        host_ops.timestamp, host_ops.number, host_ops.gaslimit, host_ops.chainid,
        host_ops.coinbase, host_ops.origin, host_ops.difficulty, host_ops.gasprice,
        host_ops.basefee,
    ):
        fn(state)

    assert [state.stack[i] for i in range(9)] == [
        0x07, 0x66, 0xDD << 8, as_int(ctx.tx_origin), as_int(ctx.block_coinbase),
        0xAA, 0x990000, 0x1100, 0xDD,
    ]


def test_selfbalance():
    state = make_state()
    state.host.accounts[DEST] = Account(balance=0x0504030201)
    host_ops.selfbalance(state)
    assert state.stack.top == 0x0504030201


def test_sload_cold_then_warm():
    state = make_state(Revision.BERLIN)
    key = (1).to_bytes(32, "big")
    state.host.accounts[DEST] = Account(storage={key: StorageValue((2).to_bytes(32, "big"))})
    start = state.gas_left
    push_all(state, 1)
    host_ops.sload(state)
    assert state.stack.top == 2
    assert start - state.gas_left == host_ops.COLD_SLOAD_COST - host_ops.WARM_STORAGE_READ_COST

    middle = state.gas_left
    push_all(state, 1)
    host_ops.sload(state)
    assert state.gas_left == middle


def test_sstore_static_violation():
    state = make_state(is_static=True)
    push_all(state, 1, 1)
    with pytest.raises(ExecutionError) as err:
        host_ops.sstore(state)
    assert err.value.status == StatusCode.STATIC_MODE_VIOLATION


def test_sstore_below_stipend_in_istanbul():
    state = make_state(Revision.ISTANBUL, gas=2300)
    push_all(state, 1, 1)
    with pytest.raises(ExecutionError) as err:
        host_ops.sstore(state)
    assert err.value.status == StatusCode.OUT_OF_GAS
    assert DEST not in state.host.accounts


def test_sstore_added():
    state = make_state(Revision.ISTANBUL, gas=20000)
    push_all(state, 1, 1)
    host_ops.sstore(state)
    assert state.gas_left == 0
    key = (1).to_bytes(32, "big")
    assert state.host.accounts[DEST].storage[key].value == (1).to_bytes(32, "big")


@pytest.mark.parametrize(
    "rev, cost",
    [
        (Revision.BYZANTIUM, 5000),
        (Revision.CONSTANTINOPLE, 200),
        (Revision.PETERSBURG, 5000),
        (Revision.ISTANBUL, 800),
        (Revision.BERLIN, host_ops.COLD_SLOAD_COST + host_ops.WARM_STORAGE_READ_COST),
    ],
)
def test_sstore_unchanged_cost(rev, cost):
    state = make_state(rev)
    value = (1).to_bytes(32, "big")
    state.host.accounts[DEST] = Account(storage={value: StorageValue(value)})
    start = state.gas_left
    push_all(state, 1, 1)
    host_ops.sstore(state)
    assert start - state.gas_left == cost


def test_sstore_modify_cold_in_berlin():
    state = make_state(Revision.BERLIN)
    key = (1).to_bytes(32, "big")
    state.host.accounts[DEST] = Account(storage={key: StorageValue((2).to_bytes(32, "big"))})
    start = state.gas_left
    push_all(state, 1, 3)
    host_ops.sstore(state)
    assert start - state.gas_left == 5000
    assert state.host.accounts[DEST].storage[key].value == (3).to_bytes(32, "big")


def test_sstore_out_of_gas_still_writes():
    state = make_state(Revision.BERLIN, gas=4999)
    key = (1).to_bytes(32, "big")
    state.host.accounts[DEST] = Account(storage={key: StorageValue((2).to_bytes(32, "big"))})
    push_all(state, 1, 3)
    with pytest.raises(ExecutionError):
        host_ops.sstore(state)
    assert state.host.accounts[DEST].storage[key].value == (3).to_bytes(32, "big")


@pytest.mark.parametrize("num_topics", range(5))
def test_log(num_topics):
    state = make_state()
    state.memory.extend(bytes(32))
    state.memory[2] = 0x77
    state.stack.push(1)
    state.stack.push(2)
    state.stack.push(3)
    state.stack.push(4)
    push_all(state, 2, 2)
    host_ops.log(state, num_topics)
    assert len(state.host.recorded_logs) == 1
    record = state.host.recorded_logs[-1]
    assert record.creator == DEST
    assert record.data == b"\x77\x00"
    assert len(record.topics) == num_topics
    assert [t[31] for t in record.topics] == [4 - i for i in range(num_topics)]


def test_log_static_violation():
    state = make_state(is_static=True)
    push_all(state, 0, 0)
    with pytest.raises(ExecutionError) as err:
        host_ops.log(state, 0)
    assert err.value.status == StatusCode.STATIC_MODE_VIOLATION
    assert state.host.recorded_logs == []


def test_log_out_of_gas_emits_nothing():
    state = make_state(gas=0)
    state.memory.extend(bytes(32))
    push_all(state, 0, 1)
    with pytest.raises(ExecutionError):
        host_ops.log(state, 0)
    assert state.host.recorded_logs == []


@pytest.mark.parametrize(
    "rev, balance, beneficiary_exists, cost",
    [
        (Revision.HOMESTEAD, 0, False, 0),
        (Revision.TANGERINE_WHISTLE, 0, False, 25000),
        (Revision.SPURIOUS_DRAGON, 0, False, 0),
        (Revision.SPURIOUS_DRAGON, 1, False, 25000),
        (Revision.TANGERINE_WHISTLE, 1, True, 0),
    ],
)
def test_selfdestruct_costs(rev, balance, beneficiary_exists, cost):
    beneficiary = bytes(19) + b"\xbe"
    state = make_state(rev)
    state.host.accounts[DEST] = Account(balance=balance)
    if beneficiary_exists:
        state.host.accounts[beneficiary] = Account()
    start = state.gas_left
    push_all(state, as_int(beneficiary))
    host_ops.selfdestruct(state)
    assert start - state.gas_left == cost
    assert state.host.recorded_selfdestructs[-1].beneficiary == beneficiary
    assert state.host.recorded_selfdestructs[-1].selfdestructed == DEST


def test_selfdestruct_out_of_gas_does_not_destruct():
    state = make_state(Revision.TANGERINE_WHISTLE, gas=24999)
    push_all(state, 0xBE)
    with pytest.raises(ExecutionError) as err:
        host_ops.selfdestruct(state)
    assert err.value.status == StatusCode.OUT_OF_GAS
    assert state.host.recorded_selfdestructs == []


def test_selfdestruct_cold_beneficiary_in_berlin():
    beneficiary = bytes(19) + b"\xbe"
    state = make_state(Revision.BERLIN)
    state.host.accounts[beneficiary] = Account()
    start = state.gas_left
    push_all(state, as_int(beneficiary))
    host_ops.selfdestruct(state)
    assert start - state.gas_left == host_ops.COLD_ACCOUNT_ACCESS_COST


def test_selfdestruct_static_violation():
    state = make_state(is_static=True)
    push_all(state, 0xBE)
    with pytest.raises(ExecutionError) as err:
        host_ops.selfdestruct(state)
    assert err.value.status == StatusCode.STATIC_MODE_VIOLATION