import html

import streamlit as st

from taskfirst import metrics
from taskfirst.errors import PermissionDenied, TaskFirstError
from taskfirst.state import current_tasks, get_workspace
from taskfirst.theme import set_theme
from taskfirst.workspace import MANAGER

set_theme(page_title="TaskFirst · Archive", page_icon="🗄️")

ws = get_workspace()
tasks = current_tasks()
names = metrics.user_names(ws.users)

st.title("🗄️ Finished Repository")
st.caption("Manager overview and quality assurance")

search = st.text_input("Search", placeholder="Search by title or handoff comment...")
items = metrics.archive_items(tasks, search)

if not items:
    st.info("No finished work matches." if search else "Nothing has been finished yet.")

for idx, (parent_id, item) in enumerate(items, start=1):
    kind = "Action point" if parent_id else "Task"
    comment = html.escape(item.handoff_comment or "No comment provided.")
    st.markdown(
        f'<div class="tf-archive-card">'
        f'<div class="tf-archive-title">#{idx} {html.escape(item.title)} <small>· {kind} · COMPLETED</small></div>'
        f'<div class="tf-archive-meta">{html.escape(names.get(item.assignee_id, metrics.UNKNOWN_ASSIGNEE))}'
        f" · Time spent {item.duration_hours}h {item.duration_minutes}m"
        f" · {metrics.classify_completion(item)}</div>"
        f'<div class="tf-archive-comment">"{comment}"</div>'
        f"</div>",
        unsafe_allow_html=True,
    )
    if item.output_link:
        st.markdown(f"[View output ↗]({item.output_link})")

    stars = item.rating.stars if item.rating else 0
    st.markdown("⭐" * stars + "☆" * (5 - stars))
    if ws.role == MANAGER:
        with st.popover("Write review"):
            with st.form(f"rate_{parent_id or 'task'}/{item.id}", clear_on_submit=True):
                new_stars = st.slider("Stars", 1, 5, value=stars or 3)
                review = st.text_area("Review", value=item.rating.comment if item.rating else "")
                if st.form_submit_button("Save review"):
                    try:
                        ws.rate(item.id, new_stars, review, parent_id=parent_id)
                    except (PermissionDenied, ValueError) as e:
                        st.error(str(e))
                    except TaskFirstError as e:
                        st.toast(f"Storage error: {e}", icon="⚠️")
                    else:
                        st.toast("Review saved", icon="⭐")
                        st.rerun()
