import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

import streamlit as st
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px

from portfolio import config
from portfolio.domain import (
    ASSET_TYPES,
    CURRENCIES,
    RISK_PROFILES,
    TX_TYPES,
    Account,
    Goal,
    Position,
    Transaction,
)
from portfolio.functional import account_label, check_allocation_total, validate_transaction
from portfolio.lazy import by_account, by_type, iter_transactions, lazy_top_positions, newest_first, recent_transactions
from portfolio.metrics import suggest_rebalance
from portfolio.services import ReportService
from portfolio.storage import JsonFileStore, export_filename, export_json
from portfolio.store import PortfolioStore
from portfolio.transforms import (
    add_account,
    add_goal,
    add_position,
    add_transaction,
    remove_account,
    remove_goal,
    remove_position,
    remove_transaction,
    uid,
    update_position,
    update_settings,
    update_targets,
)

config.configure_logging()
_logger = logging.getLogger(__name__)

st.set_page_config(page_title="Asset Portfolio", layout="wide")

if "store" not in st.session_state:
    st.session_state.store = PortfolioStore.open(JsonFileStore(config.DATA_PATH), str(config.SEED_PATH))

store: PortfolioStore = st.session_state.store
state = store.state
base = state.settings.base_currency
m = store.metrics()


def fmt_money(value, currency):
    if currency == "KRW":
        return f"₩{value:,.0f}"
    return f"${value:,.2f}"


def fmt_base(value):
    return fmt_money(value, base)


st.sidebar.markdown("### 💼 Asset Portfolio")
st.sidebar.caption(f"Base currency: {base} · USD/KRW {state.settings.usd_krw:,.0f}")

menu = st.sidebar.radio(
    "Menu",
    ["🏠 Dashboard", "💳 Accounts", "🧾 Transactions", "🎯 Goals", "🥧 Allocation", "📑 Reports", "⚙️ Settings"]
)

if store.alerts:
    st.sidebar.warning(f"⚠️ {len(store.alerts)} rebalance alert(s)")

if menu == "🏠 Dashboard":
    st.title("🏠 Dashboard")
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Total Assets", fmt_base(m.total_assets))
    with k2:
        st.metric("Accounts", len(state.accounts))
    with k3:
        st.metric("Positions", len(state.positions))
    with k4:
        st.metric("Rebalance Alerts", len(m.rebalance_alerts))

    mix = [{"Type": t, "Value": max(0.0, m.totals_by_type.get(t, 0.0))} for t in ASSET_TYPES]
    mix = [row for row in mix if row["Value"] > 0]
    if mix:
        fig_mix = px.pie(pd.DataFrame(mix), values="Value", names="Type", title="Asset Mix")
        st.plotly_chart(fig_mix, use_container_width=True)
    else:
        st.info("No assets recorded yet.")

    col_left, col_right = st.columns([3, 2])
    with col_left:
        st.subheader("📈 Net Worth (monthly)")
        if m.net_worth:
            fig_nw = go.Figure()
            fig_nw.add_trace(go.Scatter(
                x=[p.month for p in m.net_worth],
                y=[p.value for p in m.net_worth],
                mode="lines+markers",
                name="Net worth",
            ))
            fig_nw.update_layout(template="plotly_dark", margin=dict(t=30, b=10, l=10, r=10))
            st.plotly_chart(fig_nw, use_container_width=True)
            st.caption("Positions are valued at their last price in the latest month only.")
        else:
            st.info("Add a transaction to start the net worth timeline.")
    with col_right:
        st.subheader("⚠️ Rebalance Alerts")
        if m.rebalance_alerts:
            for d in m.rebalance_alerts:
                st.write(f"**{d.type}**: target {d.target:.1f}% → actual {d.actual:.1f}% ({d.diff:+.1f}%)")
        else:
            st.success("Allocation is within the drift threshold.")

    st.subheader("🕒 Recent Activity")
    recent = list(recent_transactions(state.transactions, 5))
    if recent:
        st.table(pd.DataFrame([
            {
                "Date": t.date,
                "Account": account_label(state.accounts, t.account_id),
                "Type": t.type,
                "Amount": t.amount,
            }
            for t in recent
        ]))
    else:
        st.info("No transactions yet.")

elif menu == "💳 Accounts":
    st.title("💳 Accounts & Positions")

    with st.expander("➕ Add Account"):
        with st.form("add_account", clear_on_submit=True):
            c1, c2, c3, c4 = st.columns(4)
            name = c1.text_input("Name")
            acc_type = c2.selectbox("Type", ASSET_TYPES)
            currency = c3.selectbox("Currency", CURRENCIES, index=CURRENCIES.index(base))
            opening = c4.number_input("Opening balance", value=0.0, step=1000.0)
            if st.form_submit_button("Save"):
                store.update(add_account, Account(
                    id=uid(), name=name, type=acc_type, currency=currency, opening_balance=opening
                ))
                st.rerun()

    if state.accounts:
        cols = st.columns(min(3, len(state.accounts)))
        for idx, b in enumerate(m.balances.values()):
            with cols[idx % len(cols)]:
                st.metric(f"{b.account.name} ({b.account.type} · {b.account.currency})", fmt_base(b.balance_base))
                if b.account.currency != base:
                    st.caption(fmt_money(b.balance, b.account.currency))
                if st.button("🗑 Delete", key=f"del_acc_{b.account.id}"):
                    store.update(remove_account, b.account.id)
                    st.rerun()
    else:
        st.info("No accounts yet.")

    st.header("📈 Positions")
    with st.expander("➕ Add Position"):
        with st.form("add_position", clear_on_submit=True):
            non_cash = [a for a in state.accounts if a.type != "Cash"] or list(state.accounts)
            c1, c2, c3 = st.columns(3)
            acc_name = c1.selectbox("Account", [a.name for a in non_cash])
            asset_type = c2.selectbox("Asset type", ASSET_TYPES, index=ASSET_TYPES.index("Stock"))
            currency = c3.selectbox("Currency", CURRENCIES, index=CURRENCIES.index(base))
            c4, c5, c6, c7, c8 = st.columns(5)
            symbol = c4.text_input("Symbol", placeholder="005930.KS / VOO")
            pname = c5.text_input("Name")
            qty = c6.number_input("Quantity", value=0.0)
            avg_price = c7.number_input("Average price", value=0.0)
            last_price = c8.number_input("Last price", value=0.0)
            if st.form_submit_button("Save") and acc_name:
                acc_id = next(a.id for a in non_cash if a.name == acc_name)
                store.update(add_position, Position(
                    id=uid(), account_id=acc_id, symbol=symbol, name=pname, asset_type=asset_type,
                    qty=qty, avg_price=avg_price, currency=currency, last_price=last_price,
                ))
                st.rerun()

    if m.valuations:
        st.dataframe(pd.DataFrame([
            {
                "Account": account_label(state.accounts, v.position.account_id),
                "Symbol": v.position.symbol,
                "Name": v.position.name,
                "Type": v.position.asset_type,
                "Qty": v.position.qty,
                "Avg": fmt_money(v.position.avg_price, v.position.currency),
                "Last": fmt_money(v.position.last_price, v.position.currency),
                "Market value": fmt_money(v.market_value, v.position.currency),
                "P/L": fmt_money(v.pnl, v.position.currency),
                "P/L %": f"{v.pnl_pct:.2f}%",
            }
            for v in m.valuations
        ]), use_container_width=True)

        for v in m.valuations:
            p = v.position
            c1, c2, c3 = st.columns([3, 2, 1])
            c1.write(f"**{p.name}** ({p.symbol})")
            new_price = c2.number_input("Last price", value=float(p.last_price), key=f"price_{p.id}")
            if c3.button("Update", key=f"upd_{p.id}"):
                store.update(update_position, p.id, last_price=new_price)
                st.rerun()
            if c3.button("🗑", key=f"del_pos_{p.id}"):
                store.update(remove_position, p.id)
                st.rerun()
    else:
        st.info("No positions yet.")

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")

    st.subheader("➕ Add New Transaction")
    if not state.accounts:
        st.info("Create an account first.")
    else:
        with st.form("input_form", clear_on_submit=True):
            col1, col2, col3, col4 = st.columns(4)
            with col1:
                tx_date = st.date_input("Date")
            with col2:
                acc_name = st.selectbox("Account", [a.name for a in state.accounts])
            with col3:
                tx_type = st.selectbox("Type", TX_TYPES)
            with col4:
                amount = st.number_input("Amount", min_value=0.0, step=1000.0)
            col5, col6, col7 = st.columns(3)
            fee = col5.number_input("Fee", min_value=0.0)
            tax = col6.number_input("Tax", min_value=0.0)
            note = col7.text_input("Note")
            submitted = st.form_submit_button("Add Transaction")

        if submitted:
            acc_id = next(a.id for a in state.accounts if a.name == acc_name)
            new_tx = Transaction(
                id=uid(), date=tx_date.isoformat(), account_id=acc_id, type=tx_type,
                amount=amount, fee=fee, tax=tax, note=note or "",
            )
            result = validate_transaction(new_tx, state.accounts)
            if result.is_right():
                store.update(add_transaction, new_tx)
                st.success("✅ Transaction added!")
                st.rerun()
            else:
                st.error(f"❌ {result.get_error()['message']}")

    st.divider()

    c1, c2 = st.columns(2)
    acc_filter = c1.selectbox("Account", ["All"] + [a.name for a in state.accounts])
    type_filter = c2.multiselect("Type", TX_TYPES, default=list(TX_TYPES))
    preds = [by_type(*type_filter)]
    if acc_filter != "All":
        preds.append(by_account(next(a.id for a in state.accounts if a.name == acc_filter)))

    rows = list(newest_first(iter_transactions(state.transactions, *preds)))
    if rows:
        accounts_by_id = {a.id: a for a in state.accounts}
        for t in rows:
            acc = accounts_by_id.get(t.account_id)
            cur = acc.currency if acc else base
            c = st.columns([2, 3, 2, 2, 2, 2, 3, 1])
            c[0].write(t.date)
            c[1].write(account_label(state.accounts, t.account_id))
            c[2].write(t.type)
            c[3].write(fmt_money(t.amount, cur))
            c[4].write(fmt_money(t.fee, cur))
            c[5].write(fmt_money(t.tax, cur))
            c[6].write(t.note)
            if c[7].button("🗑", key=f"del_tx_{t.id}"):
                store.update(remove_transaction, t.id)
                st.rerun()
    else:
        st.info("No transactions match the filter.")

elif menu == "🎯 Goals":
    st.title("🎯 Goals")

    with st.expander("➕ Add Goal"):
        with st.form("add_goal", clear_on_submit=True):
            c1, c2, c3 = st.columns(3)
            gname = c1.text_input("Name")
            target = c2.number_input("Target amount", value=1_000_000.0, step=100_000.0)
            deadline = c3.date_input("Deadline")
            linked = st.multiselect("Linked accounts", [a.name for a in state.accounts])
            gnote = st.text_input("Note")
            if st.form_submit_button("Save"):
                ids = tuple(a.id for a in state.accounts if a.name in linked)
                store.update(add_goal, Goal(
                    id=uid(), name=gname, target=target, deadline=deadline.isoformat(),
                    account_ids=ids, note=gnote,
                ))
                st.rerun()

    if not m.goals:
        st.info("No goals yet.")
    for gp in m.goals:
        st.subheader(gp.goal.name)
        st.caption(f"Deadline {gp.goal.deadline} · {gp.goal.note}")
        st.write(f"Progress: **{gp.pct:.1f}%** ({fmt_base(gp.value)} / {fmt_base(gp.goal.target)})")
        st.progress(float(np.clip(gp.pct, 0, 100)) / 100)
        st.caption(f"Shortfall {fmt_base(gp.remaining)} — save {fmt_base(gp.daily_saving)} per day (simple estimate)")
        if st.button("🗑 Delete goal", key=f"del_goal_{gp.goal.id}"):
            store.update(remove_goal, gp.goal.id)
            st.rerun()

elif menu == "🥧 Allocation":
    st.title("🥧 Target vs Actual Allocation")
    df_alloc = pd.DataFrame([
        {"Type": t, "Target": state.targets.allocation.get(t, 0.0), "Actual": m.allocation[t]}
        for t in ASSET_TYPES
    ])
    fig = px.bar(
        df_alloc.melt(id_vars="Type", var_name="Series", value_name="Percent"),
        x="Type", y="Percent", color="Series", barmode="group", template="plotly_dark",
    )
    st.plotly_chart(fig, use_container_width=True)

    threshold = state.targets.drift_threshold
    st.write(f"Drift threshold: **{threshold}%**")
    for d in m.drift:
        c1, c2, c3 = st.columns([2, 4, 2])
        c1.write(d.type)
        c2.write(f"target {d.target:.1f}% → actual {d.actual:.1f}% ({d.diff:+.1f}%)")
        if d.is_alerting(threshold):
            c3.write("🔴 rebalance")
        else:
            c3.write("✅ ok")

    if st.button("💡 Suggest rebalance"):
        suggestion = suggest_rebalance(m.drift, m.total_assets, base)
        if suggestion is None:
            st.warning("No rebalancing suggestion can be made.")
        else:
            st.info(suggestion.message)

elif menu == "📑 Reports":
    st.title("📑 Reports")
    show_steps = st.checkbox("Show intermediate steps", value=False)
    rpt = ReportService().report(state)
    flows = rpt["result"]["monthly_flows"]

    if flows:
        df_flows = pd.DataFrame([{"month": f.month, "income": f.income, "expense": f.expense} for f in flows])
        fig_flows = px.bar(
            df_flows.melt(id_vars="month", var_name="kind", value_name="amount"),
            x="month", y="amount", color="kind", barmode="group",
            title=f"Monthly income / expense ({base})", template="plotly_dark",
        )
        st.plotly_chart(fig_flows, use_container_width=True)
        st.table(df_flows)
    else:
        st.info("No transactions to report.")
    st.caption("Cash-flow based totals; unrealized P/L is not included. Fees and taxes are shown per transaction.")

    top = list(lazy_top_positions(rpt["result"]["valuations"], 5))
    if top:
        st.subheader("Largest unrealized P/L")
        st.table(pd.DataFrame([
            {"Symbol": v.position.symbol, "P/L": fmt_money(v.pnl, v.position.currency), "P/L %": f"{v.pnl_pct:.2f}%"}
            for v in top
        ]))

    if show_steps:
        with st.expander("Intermediate steps", expanded=False):
            for s in rpt["steps"]:
                st.write(s["calculator"], s["output"])

elif menu == "⚙️ Settings":
    st.title("⚙️ Settings")

    with st.form("settings_form"):
        c1, c2, c3 = st.columns(3)
        new_base = c1.selectbox("Base currency", CURRENCIES, index=CURRENCIES.index(base))
        usd_krw = c2.number_input("USD→KRW rate", value=float(state.settings.usd_krw), min_value=0.0)
        c2.caption("Entered manually; no live FX feed.")
        risk = c3.selectbox("Risk profile", RISK_PROFILES, index=RISK_PROFILES.index(state.settings.risk_profile))
        show_advanced = st.checkbox("Advanced mode", value=state.settings.show_advanced)

        st.markdown("**Target allocation (%)**")
        alloc_cols = st.columns(4)
        alloc = {}
        for idx, t in enumerate(ASSET_TYPES):
            alloc[t] = alloc_cols[idx % 4].number_input(t, value=float(state.targets.allocation.get(t, 0.0)), key=f"alloc_{t}")
        drift_th = st.number_input("Drift threshold (%)", value=float(state.targets.drift_threshold))
        force = st.checkbox("Save even if the targets do not add up to 100%")
        saved = st.form_submit_button("💾 Save")

    if saved:
        check = check_allocation_total(alloc)
        if check.is_left() and not force:
            st.warning(f"{check.get_error()['message']}. Tick the box above to save anyway.")
        else:
            store.update(update_settings, base_currency=new_base, usd_krw=usd_krw,
                         risk_profile=risk, show_advanced=show_advanced)
            store.update(update_targets, allocation=alloc, drift_threshold=drift_th)
            st.success("Settings saved.")
            st.rerun()

    st.subheader("🗄 Data")
    st.download_button("⬇ Export JSON", export_json(state), file_name=export_filename(), mime="application/json")
    uploaded = st.file_uploader("Import JSON", type="json")
    if uploaded is not None and st.button("Replace data with file"):
        result = store.import_text(uploaded.getvalue())
        if result.is_left():
            st.error(f"Import failed: {result.get_error()['message']}")
        else:
            st.success("Data imported.")
            st.rerun()
    if st.button("♻️ Reset to seed data"):
        store.reset()
        st.rerun()
    st.caption(f"Data is stored locally in {config.DATA_PATH}. Use JSON export as a backup.")
