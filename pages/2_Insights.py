import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from taskfirst import metrics
from taskfirst.ai import get_smart_report
from taskfirst.state import current_tasks, get_workspace
from taskfirst.theme import set_theme, stat_card_html

set_theme(page_title="TaskFirst · Insights", page_icon="📊")

ws = get_workspace()

st.title("📊 Operational Insights")

TIMEFRAMES = ["Last 7 days", "Last 30 days", "This quarter", "All time"]
CARD_TONES = ["emerald", "indigo", "amber", ""]


@st.fragment
def render_dashboard(snapshot: metrics.DashboardSnapshot):

    cols = st.columns(4)
    for col, (label, value), tone in zip(cols, snapshot.summary.cards(), CARD_TONES):
        with col:
            st.markdown(stat_card_html(label, value, tone=tone), unsafe_allow_html=True)

    left, right = st.columns([1, 1])
    with left:
        st.markdown("#### Completion timing")
        rows = snapshot.timing.chart_rows()
        if snapshot.timing.total == 0:
            st.info("No finished work yet.")
        else:
            fig = go.Figure(
                data=[
                    go.Pie(
                        labels=[r["name"] for r in rows],
                        values=[r["value"] for r in rows],
                        hole=0.6,
                        marker=dict(colors=[metrics.TIMING_COLORS[r["name"]] for r in rows]),
                        sort=False,
                    )
                ]
            )
            fig.update_layout(template="plotly_white", margin=dict(l=6, r=6, t=10, b=10), height=320,
                              legend=dict(orientation="h", yanchor="bottom", y=-0.15, xanchor="center", x=0.5))
            st.plotly_chart(fig, use_container_width=True)

    with right:
        st.markdown("#### Departments")
        dept = pd.DataFrame([r.to_dict() for r in snapshot.departments])
        if dept.empty:
            st.info("No work items yet.")
        else:
            fig = go.Figure()
            fig.add_bar(name="Estimated hrs", x=dept["team"], y=dept["estimated_hours"], marker_color="#cbd5e1")
            fig.add_bar(name="Actual hrs", x=dept["team"], y=dept["actual_hours"], marker_color="#4f46e5")
            fig.add_scatter(name="Items", x=dept["team"], y=dept["task_count"], mode="markers+lines",
                            yaxis="y2", marker_color="#10b981")
            fig.update_layout(
                barmode="group", template="plotly_white", margin=dict(l=6, r=6, t=10, b=10), height=320,
                yaxis2=dict(overlaying="y", side="right", showgrid=False, title="Items"),
                legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
            )
            st.plotly_chart(fig, use_container_width=True)

    st.markdown("#### Assignee performance")
    people = pd.DataFrame([r.to_dict() for r in snapshot.assignees])
    if people.empty:
        st.info("No assignments yet.")
    else:
        st.dataframe(
            people.rename(columns={
                "name": "Assignee",
                "completed": "Completed",
                "ongoing": "Ongoing",
                "efficiency_percent": "Efficiency %",
                "total_hours": "Hours logged",
            }),
            hide_index=True,
            use_container_width=True,
            column_config={
                "Efficiency %": st.column_config.ProgressColumn("Efficiency %", min_value=0, max_value=200, format="%d%%"),
            },
        )


snapshot = metrics.build_dashboard(current_tasks(), ws.users)
render_dashboard(snapshot)

st.divider()
st.markdown("#### 🤖 Smart report")
ac1, ac2 = st.columns([2, 1])
with ac1:
    timeframe = st.selectbox("Timeframe", TIMEFRAMES, index=1)
with ac2:
    st.write("")
    generate = st.button("Generate report", type="primary", use_container_width=True)

if generate:
    with st.spinner("Analysing performance data..."):
        st.session_state.smart_report = get_smart_report(snapshot.to_dict(), timeframe, ws.role)
if st.session_state.get("smart_report"):
    st.markdown(st.session_state.smart_report)
