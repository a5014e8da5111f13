"""Branch target buffer with two-bit saturating-counter direction prediction."""

from __future__ import annotations

import enum
from dataclasses import dataclass

ADDRESS_BITS = 30
VALID_BTB_SIZES = frozenset({1, 2, 4, 8, 16, 32})
MIN_HISTORY = 1
MAX_HISTORY = 8
_MASK32 = 0xFFFFFFFF


class FsmState(enum.IntEnum):
    """States of the two-bit bimodal counter."""

    SNT = 0
    WNT = 1
    WT = 2
    ST = 3

    @property
    def predicts_taken(self) -> bool:
        return self >= FsmState.WT

    def advance(self, taken: bool) -> FsmState:
        """Return the state after observing one outcome."""
        if taken:
            return FsmState(min(self + 1, FsmState.ST))
        return FsmState(max(self - 1, FsmState.SNT))


class Share(enum.IntEnum):
    """How program-counter bits are mixed into a shared table index."""

    NONE = 0
    LSB = 1
    MID = 2


@dataclass(frozen=True)
class SimStats:
    """Counters reported by the predictor."""

    flush_num: int
    br_num: int
    size: int


class PredictorConfigError(ValueError):
    """Raised when the predictor parameters are out of range."""


class BranchPredictor:
    """A BTB-based branch predictor with local or global history and tables."""

    def __init__(self, btb_size, history_size, tag_size, fsm_state,
                 global_history, global_table, share):
        if btb_size not in VALID_BTB_SIZES:
            raise PredictorConfigError(f"invalid BTB size: {btb_size}")
        if not MIN_HISTORY <= history_size <= MAX_HISTORY:
            raise PredictorConfigError(f"invalid history size: {history_size}")
        max_tag = ADDRESS_BITS - (btb_size.bit_length() - 1)
        if not 0 <= tag_size <= max_tag:
            raise PredictorConfigError(f"invalid tag size: {tag_size}")
        try:
            initial = FsmState(fsm_state)
        except ValueError:
            raise PredictorConfigError(f"invalid FSM state: {fsm_state}") from None
        try:
            share_kind = Share(share)
        except ValueError:
            raise PredictorConfigError(f"invalid share mode: {share}") from None

        self.btb_size = btb_size
        self.history_size = history_size
        self.tag_size = tag_size
        self.initial_state = initial
        self.global_history = bool(global_history)
        self.global_table = bool(global_table)
        self.share = share_kind

        self._table_size = 1 << history_size
        self._tags = [0] * btb_size
        self._targets = [0] * btb_size
        self._valid = [False] * btb_size
        self._global_fsm = [initial] * self._table_size if self.global_table else []
        self._local_fsms = (
            [] if self.global_table
            else [self._fresh_table() for _ in range(btb_size)]
        )
        self._global_hist = 0
        self._local_hists = [] if self.global_history else [0] * btb_size
        self._flushes = 0
        self._branches = 0

    def _fresh_table(self) -> list[FsmState]:
        return [self.initial_state] * self._table_size

    def _entry(self, pc: int) -> int:
        return (pc >> 2) % self.btb_size

    def _tag(self, pc: int) -> int:
        return ((pc >> 2) // self.btb_size) % (1 << self.tag_size)

    def _share_bits(self, pc: int) -> int:
        if self.share is Share.LSB:
            return (pc >> 2) % self._table_size
        if self.share is Share.MID:
            return (pc >> 16) % self._table_size
        return 0

    def _history(self, entry: int) -> int:
        return self._global_hist if self.global_history else self._local_hists[entry]

    def _slot(self, entry: int, pc: int) -> tuple[list[FsmState], int]:
        history = self._history(entry)
        if self.global_table:
            return self._global_fsm, self._share_bits(pc) ^ history
        return self._local_fsms[entry], history

    def _push_history(self, entry: int, taken: bool) -> None:
        shifted = ((self._history(entry) << 1) % self._table_size) + int(taken)
        if self.global_history:
            self._global_hist = shifted
        else:
            self._local_hists[entry] = shifted

    def predict(self, pc):
        """Return (taken, destination) for the branch at ``pc``."""
        pc &= _MASK32
        fallthrough = (pc + 4) & _MASK32
        entry = self._entry(pc)
        if not self._valid[entry] or self._tags[entry] != self._tag(pc):
            return False, fallthrough
        table, index = self._slot(entry, pc)
        if table[index].predicts_taken:
            return True, self._targets[entry]
        return False, fallthrough

    def update(self, pc, target_pc, taken, pred_dst):
        """Record the actual outcome of the branch at ``pc``."""
        pc &= _MASK32
        target_pc &= _MASK32
        pred_dst &= _MASK32
        fallthrough = (pc + 4) & _MASK32
        entry = self._entry(pc)
        tag = self._tag(pc)

        self._branches += 1
        if taken:
            mispredicted = pred_dst == fallthrough or pred_dst != target_pc
        else:
            mispredicted = pred_dst != fallthrough
        if mispredicted:
            self._flushes += 1

        self._valid[entry] = True
        self._targets[entry] = target_pc
        if tag != self._tags[entry]:
            self._tags[entry] = tag
            if not self.global_table:
                self._local_fsms[entry] = self._fresh_table()
            if not self.global_history:
                self._local_hists[entry] = 0

        table, index = self._slot(entry, pc)
        table[index] = table[index].advance(taken)
        self._push_history(entry, taken)

    def stats(self):
        """Return flush and branch counts and the theoretical storage size in bits."""
        if self.global_history:
            history_bits = self.history_size
        else:
            history_bits = self.history_size * self.btb_size
        fsm_count = self._table_size
        if not self.global_table:
            fsm_count *= self.btb_size
        size = (
            self.btb_size * (self.tag_size + ADDRESS_BITS + 1)
            + history_bits
            + fsm_count * 2
        )
        return SimStats(flush_num=self._flushes, br_num=self._branches, size=size)