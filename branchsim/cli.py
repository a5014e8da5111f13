"""Command-line trace runner for the branch predictor."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Iterable, TextIO

from branchsim.predictor import BranchPredictor, PredictorConfigError, Share, SimStats

PROG = "branchsim"
_MASK32 = 0xFFFFFFFF
_CONFIG_ERROR = "Error in input file: cannot read config"
_TRACE_ERROR = "Error in input file: bad trace"

_INT_PREFIX = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|[1-9][0-9]*|0[0-7]*)")

_HISTORY_KINDS = {"local_history": False, "global_history": True}
_TABLE_KINDS = {"local_tables": False, "global_tables": True}
_SHARE_KINDS = {
    "not_using_share": Share.NONE,
    "using_share_lsb": Share.LSB,
    "using_share_mid": Share.MID,
}


class TraceError(Exception):
    """A trace file could not be processed; carries the process exit code."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


@dataclass(frozen=True)
class TraceConfig:
    """Predictor parameters read from the first line of a trace."""

    btb_size: int
    history_size: int
    tag_size: int
    fsm_state: int
    global_history: bool
    global_table: bool
    share: Share


def _parse_int(text: str) -> int:
    """Parse a leading integer with automatic base (hex, octal, decimal)."""
    match = _INT_PREFIX.match(text)
    if match is None:
        return 0
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def parse_config(line):
    """Parse the configuration line of a trace."""
    fields = line.split()
    if len(fields) < 7:
        raise TraceError(_CONFIG_ERROR, 3)
    btb_size, history_size, tag_size, fsm_state = (_parse_int(f) for f in fields[:4])
    if btb_size == 0 or history_size == 0:
        raise TraceError(_CONFIG_ERROR, 4)
    if fields[4] not in _HISTORY_KINDS:
        raise TraceError(_CONFIG_ERROR, 5)
    if fields[5] not in _TABLE_KINDS:
        raise TraceError(_CONFIG_ERROR, 6)
    if fields[6] not in _SHARE_KINDS:
        raise TraceError(_CONFIG_ERROR, 7)
    return TraceConfig(
        btb_size=btb_size,
        history_size=history_size,
        tag_size=tag_size,
        fsm_state=fsm_state,
        global_history=_HISTORY_KINDS[fields[4]],
        global_table=_TABLE_KINDS[fields[5]],
        share=_SHARE_KINDS[fields[6]],
    )


def parse_branch(line):
    """Parse a trace line into (pc, taken, target_pc)."""
    fields = line.split()
    if len(fields) < 3:
        raise TraceError(_TRACE_ERROR, 9)
    pc = _parse_int(fields[0]) & _MASK32
    target_pc = _parse_int(fields[2]) & _MASK32
    if fields[1] == "T":
        taken = True
    elif fields[1] == "N":
        taken = False
    else:
        raise TraceError(_TRACE_ERROR, 9)
    return pc, taken, target_pc


def run_trace(lines, out):
    """Simulate a trace, writing each prediction and the final stats to ``out``."""
    it = iter(lines)
    header = next(it, None)
    if header is None:
        raise TraceError(_CONFIG_ERROR, 3)
    config = parse_config(header)
    try:
        predictor = BranchPredictor(
            config.btb_size,
            config.history_size,
            config.tag_size,
            config.fsm_state,
            config.global_history,
            config.global_table,
            config.share,
        )
    except PredictorConfigError:
        raise TraceError("Predictor init failed", 8) from None

    for line in it:
        if line in ("", "\n") or line.startswith("\n"):
            break
        pc, taken, target_pc = parse_branch(line)
        predicted_taken, dst = predictor.predict(pc)
        out.write(f"0x{pc:x} {'T' if predicted_taken else 'N'} 0x{dst:x}\n")
        predictor.update(pc, target_pc, taken, dst)

    stats: SimStats = predictor.stats()
    out.write(
        f"flush_num: {stats.flush_num}, br_num: {stats.br_num}, size: {stats.size}b\n"
    )
    return stats


def main(argv=None):
    """Run the simulator on the trace file named in ``argv``; return the exit code."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print(f"Usage: {PROG} <trace filename>", file=sys.stderr)
        return 1
    try:
        trace: TextIO = open(args[0], encoding="utf-8", errors="replace")
    except OSError:
        print("cannot open trace file", file=sys.stderr)
        return 2
    with trace:
        try:
            run_trace(trace, sys.stdout)
        except TraceError as exc:
            print(exc, file=sys.stderr)
            return exc.exit_code
    return 0


if __name__ == "__main__":
    raise SystemExit(main())