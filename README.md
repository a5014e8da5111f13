# branchsim

branchsim is a trace-driven simulator of a branch predictor. The predictor is made of a branch target buffer (BTB) and two-bit saturating counters. For each branch in the trace it prints the prediction, and at the end it prints a summary line.

The history register can be global or kept per BTB entry, and so can the counter tables. When the counters are in one global table, the history can be XORed with bits of the PC, as in gshare.

## Installation

```
pip install .
```

No third-party packages are needed. To run the tests, install the `test` extra (`pip install .[test]`) and run `pytest`.

## Running a trace

```
branchsim trace.txt
```

The first line of the trace holds the configuration:

```
<btb_size> <history_size> <tag_size> <fsm_state> <history> <tables> <share>
```

- `btb_size`: 1, 2, 4, 8, 16 or 32
- `history_size`: 1 to 8 bits
- `tag_size`: from 0 up to 30 − log2(btb_size)
- `fsm_state`: the initial counter state, where 0 = SNT, 1 = WNT, 2 = WT and 3 = ST
- `history`: `local_history` or `global_history`
- `tables`: `local_tables` or `global_tables`
- `share`: `not_using_share`, `using_share_lsb` (PC bits from bit 2 up) or `using_share_mid` (PC bits from bit 16 up)

Each line after that describes one branch: `<pc> <T|N> <target>`. Numbers are read with automatic base. A `0x` prefix means hex, a leading `0` means octal, and anything else is decimal. The trace ends at end of file or at the first empty line.

Example:

```
4 2 8 1 global_history global_tables using_share_lsb
0x1230 T 0x1400
0x1230 N 0x1400
```

For each branch the command prints the PC, the prediction (`T` or `N`) and the predicted target, which is the PC + 4 when the prediction is not taken. At the end it prints:

```
flush_num: <flushes>, br_num: <branches>, size: <bits>b
```

A flush is counted for each mispredicted direction, and for each taken branch whose target was predicted wrongly. The size is the theoretical storage of the BTB entries (tag, 30-bit target and valid bit), the history registers and the two-bit counters.

On error the command writes a message to standard error and exits with a non-zero status:

| Status | Cause |
|-------:|-------|
| 1 | no trace file given |
| 2 | the trace file cannot be opened |
| 3–7 | the configuration line is missing or malformed |
| 8 | the predictor rejected the configuration |
| 9 | a branch line is malformed |

## Using the library

```python
from branchsim.predictor import BranchPredictor, Share

bp = BranchPredictor(
    btb_size=4,
    history_size=2,
    tag_size=8,
    fsm_state=1,
    global_history=True,
    global_table=True,
    share=Share.LSB,
)
taken, dst = bp.predict(0x1230)
bp.update(0x1230, 0x1400, True, dst)
print(bp.stats())  # SimStats(flush_num=..., br_num=..., size=...)
```

`branchsim.predictor` also provides `FsmState`, the counter states with `advance()` and `predicts_taken`. If the configuration is invalid, the predictor raises `PredictorConfigError`, which is a subclass of `ValueError`.

`branchsim.cli` has trace helpers that can be called directly:

- `parse_config(line)` returns a `TraceConfig`.
- `parse_branch(line)` returns `(pc, taken, target_pc)`.
- `run_trace(lines, out)` writes the output to `out` and returns the final `SimStats`.

Malformed trace input raises `TraceError`. Its `exit_code` attribute holds the status listed in the table above.