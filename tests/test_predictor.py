import pytest

from branchsim.predictor import (
    BranchPredictor,
    FsmState,
    PredictorConfigError,
    Share,
)

ALL_MODES = [(False, False), (False, True), (True, False), (True, True)]


def make(**overrides):
    params = dict(
        btb_size=4,
        history_size=2,
        tag_size=8,
        fsm_state=FsmState.WNT,
        global_history=False,
        global_table=False,
        share=Share.NONE,
    )
    params.update(overrides)
    return BranchPredictor(**params)


@pytest.mark.parametrize("btb_size", [0, 3, 5, 64])
def test_rejects_bad_btb_size(btb_size):
    with pytest.raises(PredictorConfigError):
        make(btb_size=btb_size)


@pytest.mark.parametrize("history_size", [0, 9])
def test_rejects_bad_history_size(history_size):
    with pytest.raises(PredictorConfigError):
        make(history_size=history_size)


def test_rejects_bad_fsm_state():
    with pytest.raises(PredictorConfigError):
        make(fsm_state=4)


@pytest.mark.parametrize("btb_size, max_tag", [(4, 28), (1, 30), (32, 25)])
def test_tag_size_limit(btb_size, max_tag):
    pc = 0x100
    assert make(btb_size=btb_size, tag_size=max_tag).predict(pc) == (False, pc + 4)
    with pytest.raises(PredictorConfigError):
        make(btb_size=btb_size, tag_size=max_tag + 1)


@pytest.mark.parametrize("global_history, global_table", ALL_MODES)
def test_cold_predict_falls_through(global_history, global_table):
    p = make(global_history=global_history, global_table=global_table, fsm_state=FsmState.ST)
    pc = 0x4000
    assert p.predict(pc) == (False, pc + 4)


def test_fallthrough_wraps_at_32_bits():
    assert make().predict(0xFFFFFFFC) == (False, 0)


@pytest.mark.parametrize(
    "state, taken, expected",
    [
        (FsmState.ST, True, FsmState.ST),
        (FsmState.SNT, False, FsmState.SNT),
        (FsmState.WNT, True, FsmState.WT),
        (FsmState.WT, False, FsmState.WNT),
    ],
)
def test_fsm_advance_saturates(state, taken, expected):
    assert state.advance(taken) is expected


@pytest.mark.parametrize("global_history, global_table", ALL_MODES)
def test_strong_initial_state_predicts_taken_after_first_update(global_history, global_table):
    p = make(global_history=global_history, global_table=global_table, fsm_state=FsmState.ST)
    pc, target = 0x1000, 0x2000
    p.update(pc, target, True, pc + 4)
    assert p.predict(pc) == (True, target)


@pytest.mark.parametrize("global_history, global_table", ALL_MODES)
def test_strongly_not_taken_needs_more_training(global_history, global_table):
    p = make(global_history=global_history, global_table=global_table, fsm_state=FsmState.SNT)
    pc, target = 0x1000, 0x2000
    p.update(pc, target, True, pc + 4)
    assert p.predict(pc) == (False, pc + 4)


def test_tag_mismatch_misses():
    p = make(btb_size=4, tag_size=8, fsm_state=FsmState.ST)
    pc_a, target = 0x1000, 0x3000
    pc_b = pc_a + 4 * 4
    p.update(pc_a, target, True, pc_a + 4)
    assert p.predict(pc_b) == (False, pc_b + 4)
    assert p.predict(pc_a) == (True, target)


def test_zero_tag_aliases_branches_in_same_entry():
    p = make(btb_size=1, tag_size=0, fsm_state=FsmState.ST)
    pc_a, pc_b, target = 0x1000, 0x2468, 0x8000
    p.update(pc_a, target, True, pc_a + 4)
    assert p.predict(pc_b) == (True, target)


def test_new_tag_resets_local_state():
    p = make(btb_size=1, history_size=1, tag_size=8, fsm_state=FsmState.SNT)
    pc_a, pc_b, target = 0x100, 0x200, 0x900
    for _ in range(5):
        p.update(pc_a, target, True, p.predict(pc_a)[1])
    assert p.predict(pc_a) == (True, target)
    p.update(pc_b, target, False, pc_b + 4)
    p.update(pc_a, target, True, pc_a + 4)
    assert p.predict(pc_a) == (False, pc_a + 4)


@pytest.mark.parametrize("global_history, expected_taken", [(True, True), (False, False)])
def test_global_history_is_shared_between_branches(global_history, expected_taken):
    p = make(btb_size=2, history_size=1, fsm_state=FsmState.WNT,
             global_history=global_history, global_table=False)
    pc_a, pc_b, target = 0x1000, 0x1004, 0x5000
    p.update(pc_a, target, True, pc_a + 4)
    p.update(pc_b, target, False, pc_b + 4)
    expected = (True, target) if expected_taken else (False, pc_a + 4)
    assert p.predict(pc_a) == expected


@pytest.mark.parametrize(
    "share, pc_b, expected_taken",
    [
        (Share.NONE, 0x10004, True),
        (Share.LSB, 0x10004, False),
        (Share.MID, 0x10004, False),
        (Share.LSB, 0x1004, False),
        (Share.MID, 0x1004, True),
    ],
)
def test_share_mode_selects_table_slot(share, pc_b, expected_taken):
    p = make(btb_size=2, history_size=1, fsm_state=FsmState.WNT,
             global_history=True, global_table=True, share=share)
    pc_a, target = 0x1000, 0x7000
    p.update(pc_a, target, True, pc_a + 4)
    p.update(pc_b, target, False, pc_b + 4)
    expected = (True, target) if expected_taken else (False, pc_a + 4)
    assert p.predict(pc_a) == expected


@pytest.mark.parametrize(
    "taken, predicted, flushed",
    [
        (True, "fallthrough", True),
        (True, "target", False),
        (True, "other", True),
        (False, "fallthrough", False),
        (False, "target", True),
    ],
)
def test_flush_counting(taken, predicted, flushed):
    pc, target = 0x2000, 0x3000
    pred_dst = {"fallthrough": pc + 4, "target": target, "other": 0x4000}[predicted]
    p = make()
    p.update(pc, target, taken, pred_dst)
    stats = p.stats()
    assert stats.br_num == 1
    assert stats.flush_num == int(flushed)


def test_branch_count_tracks_updates():
    p = make(fsm_state=FsmState.WT)
    trace = [(0x100, 0x200, True), (0x104, 0x300, False), (0x100, 0x200, True)] * 4
    for pc, target, taken in trace:
        _, dst = p.predict(pc)
        p.update(pc, target, taken, dst)
    stats = p.stats()
    assert stats.br_num == len(trace)
    assert 0 <= stats.flush_num <= stats.br_num


def test_stats_size_local_history_local_tables():
    p = make(btb_size=4, history_size=2, tag_size=3, global_history=False, global_table=False)
    assert p.stats().size == 176


def test_stats_size_global_history_global_table():
    p = make(btb_size=4, history_size=2, tag_size=3, global_history=True, global_table=True)
    assert p.stats().size == 146


def test_stats_size_unchanged_by_updates():
    p = make()
    before = p.stats().size
    p.update(0x100, 0x200, True, 0x104)
    assert p.stats().size == before