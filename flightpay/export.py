from __future__ import annotations
import pandas as pd
from io import BytesIO
from typing import List
from .models import FamilyRecord
from .summary import families_frame, players_frame, month_collections

SHEET_FAMILIES = "Families"
SHEET_PLAYERS = "Players"
SHEET_MONTHS = "Collections"


def export_families_to_excel_bytes(families: List[FamilyRecord], month: str) -> bytes:
    fam_df = families_frame(families, month)
    ply_df = players_frame(families)
    mon_df = month_collections(families)

    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        fam_df.to_excel(writer, index=False, sheet_name=SHEET_FAMILIES)
        ply_df.to_excel(writer, index=False, sheet_name=SHEET_PLAYERS)
        if not mon_df.empty:
            mon_df.to_excel(writer, index=False, sheet_name=SHEET_MONTHS)

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
        fmt_money = wb.add_format({"num_format": "$#,##0.00"})
        fmt_owes = wb.add_format({"font_color": "#C0392B"})
        fmt_paid = wb.add_format({"font_color": "#1E8449"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 14, max_width: int = 48):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return None
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 6))
                ws.set_column(col, col, max(default_width, w))
            return ws

        ws = format_df_sheet(SHEET_FAMILIES, fam_df)
        if ws is not None:
            cols = list(fam_df.columns)
            for name in ("Monthly rate", "Balance"):
                j = cols.index(name)
                ws.set_column(j, j, 14, fmt_money)
            ws.set_column(cols.index("Players"), cols.index("Players"), 40)
            ws.set_column(cols.index("Notes"), cols.index("Notes"), 40)
            j = cols.index("Status")
            last_row = max(1, len(fam_df))
            ws.conditional_format(1, j, last_row, j, {
                "type": "text", "criteria": "containing", "value": "Owes", "format": fmt_owes,
            })
            ws.conditional_format(1, j, last_row, j, {
                "type": "text", "criteria": "containing", "value": "Paid", "format": fmt_paid,
            })

        format_df_sheet(SHEET_PLAYERS, ply_df, default_width=16)
        if not mon_df.empty:
            ws3 = format_df_sheet(SHEET_MONTHS, mon_df)
            if ws3 is not None:
                ws3.set_column(2, 2, 14, fmt_money)

    return bio.getvalue()
