import logging

import streamlit as st

from taskfirst.metrics import stat_card_counts
from taskfirst.state import current_tasks, get_workspace
from taskfirst.theme import set_theme, stat_card_html

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

set_theme()

ws = get_workspace()
counts = stat_card_counts(current_tasks())

st.markdown('<div class="tf-hero">', unsafe_allow_html=True)
st.markdown("<h1>TaskFirst</h1>", unsafe_allow_html=True)
st.markdown(
    '<div class="desc">Plan missions, split them into action points, hand finished work off '
    "and watch the numbers move. Use the sidebar to open the workspace, the insights dashboard "
    "or the archive.</div>",
    unsafe_allow_html=True,
)
st.markdown("</div>", unsafe_allow_html=True)

c1, c2, c3 = st.columns(3)
with c1:
    st.markdown(stat_card_html("Work items", counts.total, tone="indigo"), unsafe_allow_html=True)
with c2:
    st.markdown(stat_card_html("In progress", counts.in_progress, tone="amber"), unsafe_allow_html=True)
with c3:
    st.markdown(stat_card_html("Finished", counts.finished, tone="emerald"), unsafe_allow_html=True)

st.caption(f"Storage: {ws.backend.name} · signed in as {ws.current_user_id} ({ws.role})")
if not ws.backend.is_configured:
    st.warning("The selected cloud backend is not configured; check the SUPABASE_* / FIREBASE_* settings.")

if st.button("Open workspace 🚀"):
    st.switch_page("pages/1_Workspace.py")
