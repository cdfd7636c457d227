from app.services.ranking import competition_rank, subject_positions


def test_ties_share_rank_and_leave_a_gap():
    positions = competition_rank([(1, 90), (2, 90), (3, 80)])
    assert positions == {1: 1, 2: 1, 3: 3}


def test_rank_orders_by_score_descending():
    positions = competition_rank([(1, 55.5), (2, 72.25), (3, 64), (4, 72.25), (5, 10)])
    assert positions == {2: 1, 4: 1, 3: 3, 1: 4, 5: 5}


def test_rank_zero_scores_still_ranked():
    positions = competition_rank([(1, 0), (2, 0), (3, 50)])
    assert positions == {3: 1, 1: 2, 2: 2}


def test_rank_empty():
    assert competition_rank([]) == {}


def test_subject_positions_skip_zero_totals():
    positions = subject_positions([(1, 80), (2, 0), (3, None), (4, 65)])
    assert positions == {1: "1", 4: "2", 2: "", 3: ""}


def test_subject_positions_ties():
    positions = subject_positions([(1, 70), (2, 85), (3, 70), (4, 60)])
    assert positions == {2: "1", 1: "2", 3: "2", 4: "4"}
