from __future__ import annotations

from flightpay.api import parse_upload, import_rows, NO_FILE, PARSE_FAILED

CSV = (
    b"Player,Parent First,Parent Last,Team,Email,Phone,Cost,Notes,Dec.1\n"
    b"Alex Smith,Jane,Smith,U12,jane@x.com,(555) 111-2222,95,,Paid\n"
    b"Sam Smith,Jane,Smith,U12,jane@x.com,555-111-2222,95,,40\n"
    b",,,,,,,,\n"
    b"Kim Lee,Ann,Lee,U10,ann@x.com,555-000-1111,0,Coach,\n"
)


def test_no_file() -> None:
    assert parse_upload(None, None) == {"error": NO_FILE}
    assert parse_upload("tracker.csv", b"") == {"error": NO_FILE}


def test_unreadable_file() -> None:
    assert parse_upload("tracker.xlsx", b"not a workbook") == {"error": PARSE_FAILED}


def test_parse_preview() -> None:
    out = parse_upload("tracker.csv", CSV)
    assert "error" not in out
    assert [r["player_name"] for r in out["rows"]] == ["Alex Smith", "Sam Smith", "Kim Lee"]
    assert set(out["headers"]) == {
        "player_name", "parent_first", "parent_last", "team", "email", "phone", "cost", "notes", "december",
    }
    assert out["rows"][1]["current_balance"] == 40.0
    assert out["rows"][2]["is_coach"] is True


def test_import_preview_rows(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    result = import_rows(rows, store)
    assert result == {"success": 2, "errors": []}

    smith = store.get_family("jane_smith_5551112222")
    assert smith.monthly_rate == 170.0
    assert smith.current_balance == 40.0
    lee = store.get_family("ann_lee_5550001111")
    assert lee.monthly_rate == 95.0
    assert lee.players[0].is_coach


def test_import_skips_rows_blanked_in_preview(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    rows[2]["player_name"] = "  "
    result = import_rows(rows, store)
    assert result["success"] == 1


def test_import_reports_bad_strategy(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    result = import_rows(rows, store, balance_strategy="median")
    assert result["success"] == 0
    assert result["errors"][0].startswith("Import failed")
    assert store.list_families() == []


def test_preview_edits_go_through_row_rules(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    rows[1]["phone"] = "555-111-2222"
    rows[1]["notes"] = "do not send"
    result = import_rows(rows, store)
    assert result["success"] == 2

    ids = [f.id for f in store.list_families()]
    assert ids == ["ann_lee_5550001111", "jane_smith_5551112222"]
    smith = store.get_family("jane_smith_5551112222")
    assert len(smith.players) == 2
    assert smith.do_not_invoice is True


def test_preview_coach_flag_recomputed(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    rows[2]["notes"] = "coach - dont send"
    import_rows(rows, store)
    lee = store.get_family("ann_lee_5550001111")
    assert lee.do_not_invoice is True
    assert lee.players[0].is_coach is False


def test_blank_editor_cells_are_empty(store) -> None:
    rows = parse_upload("tracker.csv", CSV)["rows"]
    rows[0]["email"] = float("nan")
    rows.append({"player_name": float("nan"), "parent_first": "X"})
    result = import_rows(rows, store)
    assert result["success"] == 2
    # parent fields come from the first row
    assert store.get_family("jane_smith_5551112222").email is None
