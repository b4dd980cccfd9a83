from __future__ import annotations
import logging
import pandas as pd
import requests
import streamlit as st
from flightpay.api import parse_upload, import_rows
from flightpay.infer import describe_columns, DEFAULT_BALANCE_TOKEN
from flightpay.models import PAYMENT_METHODS, PAYMENT_METHOD_LABELS
from flightpay.reconcile import BALANCE_STRATEGIES, DEFAULT_BALANCE_STRATEGY, load_pricing
from flightpay.square import SquareClient, SquareError
from flightpay.store import FamilyStore
from flightpay.summary import VIEWS, filter_families, dashboard_stats, families_frame, month_collections
from flightpay.sync import sync_with_square, send_family_invoice, list_square_customers, CLUB_NAME
from flightpay.export import export_families_to_excel_bytes
from flightpay.utils import current_month, month_key

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("flightpay.app")

st.set_page_config(page_title=f"{CLUB_NAME} - Dues", layout="wide")
# =========================

# Helpers
# =========================
VIEW_LABELS = {"all": "All", "owes": "Owes", "paid": "Paid"}


@st.cache_resource
def get_store() -> FamilyStore:
    return FamilyStore().init()


def get_square_client() -> SquareClient | None:
    try:
        return SquareClient.from_env()
    except ValueError as e:
        logger.warning("Square disabled: %s", e)
        return None


def _month_picker(key: str) -> str:
    raw = st.text_input("Month (YYYY-MM)", value=st.session_state.get(key, current_month()), key=f"{key}__input")
    month = month_key(raw) or current_month()
    st.session_state[key] = month
    return month
# =========================

# Dashboard
# =========================
def dashboard_page():
    store = get_store()
    families = store.list_families()

    top1, top2 = st.columns([3, 1])
    with top1:
        st.title(f"🏀 {CLUB_NAME}")
        st.caption("Monthly dues tracker")
    with top2:
        client = get_square_client()
        apply_square = st.checkbox("Mark Square-paid families", value=False, disabled=client is None)
        if st.button("🔄 Sync Square", disabled=client is None):
            with st.spinner("Syncing..."):
                res = sync_with_square(client, store, st.session_state.get("month", current_month()), apply=apply_square)
            st.session_state["last_sync"] = res
            st.rerun()

    if not families:
        st.info("No families yet. Import your Excel tracker from the Import page.")
        return

    c1, c2 = st.columns([2, 1])
    with c1:
        view = st.radio("Show", VIEWS, format_func=lambda v: VIEW_LABELS[v], horizontal=True)
    with c2:
        month = _month_picker("month")

    shown = filter_families(families, view)
    stats = dashboard_stats(shown)

    s1, s2, s3, s4 = st.columns(4)
    s1.metric("Total owed", f"${stats['total_owed']:,.2f}")
    s2.metric("Families", stats["families"])
    s3.metric("Paid up", stats["paid"])
    s4.metric("Collection rate", f"{stats['collection_rate']}%")

    res = st.session_state.get("last_sync")
    if res is not None:
        with st.expander("Last Square sync", expanded=not res.success):
            if not res.success:
                st.error(res.error)
            else:
                st.write(
                    f"Invoices: **{res.summary['total_invoices']}** | "
                    f"Paid: **{res.summary['paid_count']}** | Pending: **{res.summary['pending']}**"
                )
                if res.hints:
                    st.warning(f"{len(res.hints)} families paid in Square but not marked paid for the month:")
                    st.dataframe(pd.DataFrame(res.hints), width="stretch", hide_index=True)
                if res.applied:
                    st.success(f"Marked paid via Square: {len(res.applied)}")
                if res.invoices:
                    st.dataframe(pd.DataFrame(res.invoices), width="stretch", hide_index=True)

    q = st.text_input("Search (parent / player / phone)", value="")
    df = families_frame(shown, month)
    if q.strip():
        mask = (
            df["Parent"].astype(str).str.contains(q.strip(), case=False, na=False)
            | df["Players"].astype(str).str.contains(q.strip(), case=False, na=False)
            | df["Phone"].astype(str).str.contains(q.strip(), case=False, na=False)
        )
        df = df[mask]
    st.dataframe(df.drop(columns=["ID"]), width="stretch", hide_index=True)

    # Mark paid
    st.subheader("Record a payment")
    owing = [f for f in shown if f.current_balance > 0 and f.id in set(df["ID"])]
    if not owing:
        st.caption("Nobody in this view owes anything.")
    else:
        labels = {f"{f.display_name} ({', '.join(f.player_names)}) - ${f.current_balance:,.2f}": f for f in owing}
        chosen = st.selectbox("Family", list(labels.keys()))
        fam = labels[chosen]
        cols = st.columns(len(PAYMENT_METHODS))
        for col, method in zip(cols, PAYMENT_METHODS):
            with col:
                if st.button(PAYMENT_METHOD_LABELS[method], key=f"pay__{fam.id}__{method}"):
                    store.mark_paid(fam.id, month, method)
                    st.success(f"{fam.display_name}: {month} marked paid ({PAYMENT_METHOD_LABELS[method]}).")
                    st.rerun()

        client = get_square_client()
        if st.button("📨 Send Square invoice", disabled=client is None or fam.do_not_invoice):
            inv = send_family_invoice(client, store, fam, month)
            if inv.success:
                st.success(f"Invoice {inv.invoice_id} sent.")
            else:
                st.error(inv.error)

    if client is not None:
        with st.expander("Square customers", expanded=False):
            if st.button("Load customers"):
                try:
                    st.session_state["square_customers"] = list_square_customers(client)
                except (SquareError, requests.RequestException) as e:
                    logger.error("Square customers error: %s", e)
                    st.error("Failed to fetch customers")
            if st.session_state.get("square_customers"):
                st.dataframe(pd.DataFrame(st.session_state["square_customers"]), width="stretch", hide_index=True)

    with st.expander("Collections by month", expanded=False):
        st.dataframe(month_collections(families), width="stretch", hide_index=True)

    xbytes = export_families_to_excel_bytes(shown, month)
    st.download_button(
        "Download Excel",
        data=xbytes,
        file_name=f"dues_{month}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
# =========================

# Import
# =========================
def import_page():
    st.title("📥 Import tracker")
    st.write("Upload the tracker export. Players are grouped into families by parent name and phone.")

    c1, c2, c3 = st.columns(3)
    with c1:
        token = st.text_input("Balance column (month header)", value=DEFAULT_BALANCE_TOKEN)
    with c2:
        strategy = st.selectbox(
            "Family balance from sibling rows",
            BALANCE_STRATEGIES,
            index=BALANCE_STRATEGIES.index(DEFAULT_BALANCE_STRATEGY) if DEFAULT_BALANCE_STRATEGY in BALANCE_STRATEGIES else 0,
            format_func=lambda s: {"max": "Largest (balance repeated per row)", "sum": "Sum (balance per player)"}[s],
        )
    with c3:
        atomic = st.checkbox("All-or-nothing import", value=False)

    prices = load_pricing()
    p1, p2 = st.columns(2)
    with p1:
        single = st.number_input("Single player rate", min_value=0.0, value=float(prices["single_player"]))
    with p2:
        siblings = st.number_input("Siblings rate", min_value=0.0, value=float(prices["siblings"]))

    upload = st.file_uploader("Tracker file", type=["xlsx", "xlsm", "csv"], accept_multiple_files=False)
    if upload is None:
        st.stop()

    parsed = parse_upload(upload.name, upload.getvalue(), balance_token=token)
    if "error" in parsed:
        st.error(parsed["error"])
        st.stop()

    rows = parsed["rows"]
    with st.expander("Recognised columns", expanded=False):
        st.dataframe(pd.DataFrame(describe_columns(parsed["header_row"], parsed["columns"])), width="stretch", hide_index=True)
        missing = [f for f in ("player_name", "parent_first", "parent_last", "phone", "december") if f not in parsed["headers"]]
        if missing:
            st.warning("Not found: " + ", ".join(missing))

    if not rows:
        st.warning("No player rows found.")
        st.stop()

    st.subheader(f"Preview ({len(rows)} players)")
    preview = pd.DataFrame(rows)
    edited = st.data_editor(preview, width="stretch", hide_index=True, disabled=["origin_row"])

    if st.button("✓ Import to database", type="primary"):
        records = edited.to_dict(orient="records")
        with st.spinner("Importing..."):
            result = import_rows(
                records,
                get_store(),
                pricing={"single_player": single, "siblings": siblings},
                balance_strategy=strategy,
                atomic=atomic,
            )
        if result["errors"]:
            st.error(f"Imported {result['success']} families with {len(result['errors'])} errors:")
            for e in result["errors"]:
                st.write(f"- {e}")
        else:
            st.success(f"Imported {result['success']} families.")
# =========================

# Main
# =========================
page = st.sidebar.radio("Page", ["Dashboard", "Import"])
if page == "Dashboard":
    dashboard_page()
else:
    import_page()
