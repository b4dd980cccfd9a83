from __future__ import annotations

import pytest

from flightpay.extract import extract_rows
from flightpay.models import PlayerBillingRow
from flightpay.reconcile import family_key, record_id, reconcile_families, load_pricing


def _r(player, first="Jane", last="Smith", phone="5551112222", **kw) -> PlayerBillingRow:
    return PlayerBillingRow(player_name=player, parent_first=first, parent_last=last, phone=phone, **kw)


def test_end_to_end_siblings() -> None:
    matrix = [
        ["Player", "Parent First", "Parent Last", "Team", "Email", "Phone", "Cost", "Notes", "Dec.1"],
        ["Alex Smith", "Jane", "Smith", "U12", "jane@x.com", "(555) 111-2222", 95, "", "Paid"],
        ["Sam Smith", "Jane", "Smith", "U12", "jane@x.com", "555-111-2222", 95, "", 40],
    ]
    rows, _ = extract_rows(matrix)
    families = reconcile_families(rows, pricing={"single_player": 95, "siblings": 170}, balance_strategy="max")

    assert len(families) == 1
    fam = families[0]
    assert fam.id == "jane_smith_5551112222"
    assert fam.phone == "5551112222"
    assert [(p.name, p.team, p.is_coach) for p in fam.players] == [
        ("Alex Smith", "U12", False),
        ("Sam Smith", "U12", False),
    ]
    assert fam.current_balance == 40
    assert fam.monthly_rate == 170
    assert fam.do_not_invoice is False
    assert fam.email == "jane@x.com"


def test_family_key_and_id() -> None:
    key = family_key(_r("A", first="Mary Ann", last="O'Neil"))
    assert key == "mary ann_o'neil_5551112222"
    assert record_id(key) == "mary_ann_o_neil_5551112222"


def test_single_player_tier() -> None:
    fam = reconcile_families([_r("Alex")], pricing={"single_player": 95, "siblings": 170})[0]
    assert fam.monthly_rate == 95


def test_coach_does_not_count_as_sibling() -> None:
    rows = [_r("Alex"), _r("Coach Kid", is_coach=True)]
    fam = reconcile_families(rows, pricing={"single_player": 95, "siblings": 170})[0]
    assert len(fam.players) == 2
    assert fam.players[1].is_coach is True
    assert fam.monthly_rate == 95


def test_explicit_cost_overrides_tier() -> None:
    rows = [_r("Alex", cost=60), _r("Sam", cost=60)]
    fam = reconcile_families(rows, pricing={"single_player": 95, "siblings": 170})[0]
    assert fam.monthly_rate == 60


def test_explicit_cost_on_later_row() -> None:
    rows = [_r("Alex"), _r("Sam", cost=150)]
    fam = reconcile_families(rows, pricing={"single_player": 95, "siblings": 170})[0]
    assert fam.monthly_rate == 150


def test_max_balance_across_siblings() -> None:
    rows = [_r("A", current_balance=0), _r("B", current_balance=40), _r("C", current_balance=40)]
    assert reconcile_families(rows, balance_strategy="max")[0].current_balance == 40


def test_sum_balance_strategy() -> None:
    rows = [_r("A", current_balance=0), _r("B", current_balance=40), _r("C", current_balance=40)]
    assert reconcile_families(rows, balance_strategy="sum")[0].current_balance == 80


def test_unknown_strategy_rejected() -> None:
    with pytest.raises(ValueError):
        reconcile_families([_r("A")], balance_strategy="avg")


def test_do_not_invoice_is_sticky() -> None:
    rows = [_r("A"), _r("B", do_not_invoice=True), _r("C")]
    assert reconcile_families(rows)[0].do_not_invoice is True


def test_parent_fields_from_first_row() -> None:
    rows = [_r("A", email="", notes="first"), _r("B", email="late@x.com", notes="second")]
    fam = reconcile_families(rows)[0]
    assert fam.email is None
    assert fam.notes == "first"


def test_different_phone_splits_family() -> None:
    rows = [_r("A"), _r("B", phone="5559990000")]
    families = reconcile_families(rows)
    assert [f.id for f in families] == ["jane_smith_5551112222", "jane_smith_5559990000"]


def test_key_is_case_insensitive() -> None:
    rows = [_r("A", first="JANE", last="SMITH"), _r("B")]
    families = reconcile_families(rows)
    assert len(families) == 1
    assert families[0].first_name == "JANE"


def test_reconcile_is_deterministic() -> None:
    rows = [_r("A", current_balance=10), _r("B", first="Tom", current_balance=20)]
    first = [f.to_dict() for f in reconcile_families(rows)]
    second = [f.to_dict() for f in reconcile_families(rows)]
    assert first == second


def test_row_order_only_changes_player_order() -> None:
    rows = [_r("A", current_balance=10), _r("B", current_balance=30), _r("C", first="Tom")]
    fwd = {f.id: f for f in reconcile_families(rows)}
    rev = {f.id: f for f in reconcile_families(list(reversed(rows)))}
    assert fwd.keys() == rev.keys()
    for fid in fwd:
        assert fwd[fid].current_balance == rev[fid].current_balance
        assert fwd[fid].monthly_rate == rev[fid].monthly_rate
        assert sorted(fwd[fid].player_names) == sorted(rev[fid].player_names)


def test_empty_input() -> None:
    assert reconcile_families([]) == []


def test_pricing_overrides() -> None:
    prices = load_pricing({"siblings": 150, "unknown": 1})
    assert prices["siblings"] == 150.0
    assert "unknown" not in prices


def test_same_bytes_same_families() -> None:
    from flightpay.ingest import load_matrix

    data = (
        b"Player,Parent First,Parent Last,Team,Email,Phone,Cost,Notes,Dec.1\n"
        b"Alex Smith,Jane,Smith,U12,jane@x.com,(555) 111-2222,95,,Paid\n"
        b"Sam Smith,Jane,Smith,U12,jane@x.com,555-111-2222,95,,40\n"
        b"Kim Lee,Ann,Lee,U10,ann@x.com,555-000-1111,0,Coach,\n"
    )

    def run():
        rows, _ = extract_rows(load_matrix("tracker.csv", data))
        return [f.to_dict() for f in reconcile_families(rows)]

    first, second = run(), run()
    assert first == second
    assert [f["id"] for f in first] == ["jane_smith_5551112222", "ann_lee_5550001111"]
