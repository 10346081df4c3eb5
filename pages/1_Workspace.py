from datetime import date

import pandas as pd
import streamlit as st

from taskfirst import metrics
from taskfirst.errors import AlreadyFinishedError, ItemNotFoundError, PermissionDenied, TaskFirstError
from taskfirst.models import ALL_STATUSES, Priority, Status
from taskfirst.seed import INITIAL_DEPARTMENTS, TASK_TYPES
from taskfirst.state import current_projects, current_tasks, get_filter, get_workspace, refresh_tasks
from taskfirst.theme import set_theme, stat_card_html
from taskfirst.workspace import MANAGER, MEMBER

set_theme(page_title="TaskFirst · Workspace", page_icon="🗂️")

ws = get_workspace()
flt = get_filter()

STATUS_VALUES = [s.value for s in ALL_STATUSES]
PRIORITY_VALUES = [p.value for p in Priority]

STAT_CARDS = [
    ("Total", metrics.ALL_FILTER, "total", "indigo"),
    ("Not Started", Status.NOT_STARTED.value, "not_started", ""),
    ("In Progress", Status.IN_PROGRESS.value, "in_progress", "amber"),
    ("Awaiting Clarity", Status.AWAITING_CLARITY.value, "awaiting_clarity", "rose"),
    ("Finished", Status.FINISHED.value, "finished", "emerald"),
]

# Editable columns -> task field names
EDITABLE = {
    "Title": "title",
    "Project": "project_id",
    "Type": "task_type",
    "Team": "team",
    "Assignee": "assignee_id",
    "Status": "status",
    "Priority": "priority",
    "Deadline": "deadline",
    "Est. Hrs": "estimated_hours",
    "Hrs": "duration_hours",
    "Mins": "duration_minutes",
}


# ----- Sidebar: session identity -----
with st.sidebar:
    st.subheader("Session")
    user_names = {u.id: u.name for u in ws.users}
    ws.current_user_id = st.selectbox(
        "Signed in as",
        options=list(user_names),
        index=list(user_names).index(ws.current_user_id) if ws.current_user_id in user_names else 0,
        format_func=lambda uid: user_names.get(uid, uid),
    )
    ws.role = st.radio("Role", [MANAGER, MEMBER], index=0 if ws.role == MANAGER else 1, horizontal=True)
    st.caption(f"Storage backend: {ws.backend.name}")


def _run(action, success: str = None):
    """Run a workspace action and surface domain errors as notifications."""
    try:
        result = action()
    except PermissionDenied as e:
        st.error(f"Not allowed: {e}")
        return None
    except AlreadyFinishedError as e:
        st.warning(str(e))
        return None
    except ItemNotFoundError as e:
        st.warning(f"{e}. The list was refreshed.")
        return None
    except TaskFirstError as e:
        st.toast(f"Storage error: {e}", icon="⚠️")
        return None
    if success:
        st.toast(success, icon="✅")
    return result


def _to_date(value):
    parsed = metrics.parse_timestamp(value)
    return parsed.date() if parsed else None


def items_to_df(items, projects):
    project_names = {p.id: p.name for p in projects}
    rows = []
    for item in items:
        rows.append({
            "ID": item.id,
            "Title": item.title,
            "Project": project_names.get(getattr(item, "project_id", ""), getattr(item, "project_id", "")),
            "Type": item.task_type,
            "Team": item.team,
            "Assignee": user_names.get(item.assignee_id, item.assignee_id),
            "Status": str(item.status),
            "Priority": str(item.priority),
            "Deadline": _to_date(item.deadline),
            "Est. Hrs": float(item.estimated_hours or 0),
            "Hrs": float(item.duration_hours or 0),
            "Mins": float(item.duration_minutes or 0),
        })
    if not rows:
        return pd.DataFrame(columns=["ID"] + list(EDITABLE))
    return pd.DataFrame(rows)


def _cell_value(column, value, projects):
    if column == "Assignee":
        by_name = {v: k for k, v in user_names.items()}
        return by_name.get(value, value)
    if column == "Project":
        by_name = {p.name: p.id for p in projects}
        return by_name.get(value, value)
    if column == "Deadline":
        if value is None or (isinstance(value, float) and pd.isna(value)) or value is pd.NaT:
            return None
        return value.isoformat() if isinstance(value, date) else str(value)
    if column in ("Est. Hrs", "Hrs", "Mins"):
        return 0 if value is None or pd.isna(value) else value
    return value


def diff_rows(before: pd.DataFrame, after: pd.DataFrame, projects):
    """Yield (item_id, updates) for every edited row."""
    before = before.set_index("ID")
    for _, row in after.iterrows():
        item_id = row["ID"]
        if item_id not in before.index:
            continue
        old = before.loc[item_id]
        updates = {}
        for column, field_name in EDITABLE.items():
            if column not in after.columns:
                continue
            new_value, old_value = row[column], old[column]
            if pd.isna(new_value) and pd.isna(old_value):
                continue
            if new_value != old_value:
                updates[field_name] = _cell_value(column, new_value, projects)
        if updates:
            yield item_id, updates


def apply_edits(item_id, updates, parent_id=None):
    status = updates.pop("status", None)
    if updates:
        if parent_id:
            _run(lambda: ws.update_subtask(parent_id, item_id, updates), "Saved")
        else:
            _run(lambda: ws.update_task(item_id, updates), "Saved")
    if status:
        _run(lambda: ws.set_status(item_id, status, parent_id=parent_id), f"Status set to {status}")


tasks = current_tasks()
projects = current_projects()

st.title("🗂️ Mission Workspace")

# ----- Stat cards (click to toggle the filter) -----
counts = metrics.stat_card_counts(tasks).to_dict()
card_cols = st.columns(len(STAT_CARDS))
for col, (label, key, count_key, tone) in zip(card_cols, STAT_CARDS):
    with col:
        st.markdown(stat_card_html(label, counts[count_key], active=flt.active == key, tone=tone), unsafe_allow_html=True)
        if st.button("Clear" if flt.active == key else "Filter", key=f"flt_{key}", use_container_width=True):
            flt.toggle(key)
            st.rerun()

visible = flt.apply(tasks)
if flt.active and flt.active != metrics.ALL_FILTER:
    st.caption(f"Showing tasks with at least one item in **{flt.active}** ({len(visible)} of {len(tasks)})")

# ----- Toolbar -----
tb1, tb2, tb3 = st.columns([1, 1, 4])
with tb1:
    if ws.role == MANAGER and st.button("➕ New task", use_container_width=True):
        created = _run(lambda: ws.add_task(), "Task created")
        if created:
            st.rerun()
with tb2:
    if st.button("🔄 Refresh", use_container_width=True):
        refresh_tasks()
        st.rerun()

# ----- Spreadsheet -----
task_df = items_to_df(visible, projects)
edited = st.data_editor(
    task_df,
    key="task_sheet",
    hide_index=True,
    use_container_width=True,
    disabled=["ID"],
    column_config={
        "ID": st.column_config.TextColumn("ID", width="small"),
        "Project": st.column_config.SelectboxColumn("Project", options=[p.name for p in projects]),
        "Type": st.column_config.SelectboxColumn("Type", options=TASK_TYPES),
        "Team": st.column_config.SelectboxColumn("Team", options=INITIAL_DEPARTMENTS),
        "Assignee": st.column_config.SelectboxColumn("Assignee", options=list(user_names.values())),
        "Status": st.column_config.SelectboxColumn("Status", options=STATUS_VALUES),
        "Priority": st.column_config.SelectboxColumn("Priority", options=PRIORITY_VALUES),
        "Deadline": st.column_config.DateColumn("Deadline"),
        "Est. Hrs": st.column_config.NumberColumn("Est. Hrs", min_value=0, step=0.5),
        "Hrs": st.column_config.NumberColumn("Hrs", min_value=0, step=1),
        "Mins": st.column_config.NumberColumn("Mins", min_value=0, step=5),
    },
)
if st.button("💾 Save changes", type="primary"):
    changed = list(diff_rows(task_df, edited, projects))
    for item_id, updates in changed:
        apply_edits(item_id, updates)
    if changed:
        st.rerun()
    st.info("No changes to save.")

# ----- Subtasks -----
st.subheader("Action points")
for task in visible:
    done, total, pct = metrics.subtask_progress(task)
    with st.expander(f"{task.title} · {done}/{total} done", expanded=False):
        st.markdown(
            f'<div class="tf-progress"><div class="tf-progress-fill" style="width:{pct:.0f}%"></div></div>',
            unsafe_allow_html=True,
        )
        if task.sub_tasks:
            sub_df = items_to_df(task.sub_tasks, projects).drop(columns=["Project"])
            sub_edited = st.data_editor(
                sub_df,
                key=f"sub_sheet_{task.id}",
                hide_index=True,
                use_container_width=True,
                disabled=["ID"],
                column_config={
                    "Type": st.column_config.SelectboxColumn("Type", options=TASK_TYPES),
                    "Team": st.column_config.SelectboxColumn("Team", options=INITIAL_DEPARTMENTS),
                    "Assignee": st.column_config.SelectboxColumn("Assignee", options=list(user_names.values())),
                    "Status": st.column_config.SelectboxColumn("Status", options=STATUS_VALUES),
                    "Priority": st.column_config.SelectboxColumn("Priority", options=PRIORITY_VALUES),
                    "Deadline": st.column_config.DateColumn("Deadline"),
                },
            )
            if st.button("Save action points", key=f"save_sub_{task.id}"):
                for sub_id, updates in diff_rows(sub_df, sub_edited, projects):
                    apply_edits(sub_id, updates, parent_id=task.id)
                st.rerun()

        sc1, sc2, sc3 = st.columns(3)
        with sc1:
            if st.button("➕ Action point", key=f"add_sub_{task.id}"):
                if _run(lambda: ws.add_subtask(task.id), "Action point added"):
                    st.rerun()
        with sc2:
            removable = [s for s in task.sub_tasks if ws.permissions(s, is_sub=True).can_delete]
            if removable:
                victim = st.selectbox(
                    "Remove action point",
                    options=[s.id for s in removable],
                    format_func=lambda sid: task.sub_task(sid).title,
                    key=f"del_sub_pick_{task.id}",
                )
                if st.button("🗑️ Remove", key=f"del_sub_{task.id}"):
                    _run(lambda: ws.delete_subtask(task.id, victim), "Action point removed")
                    st.rerun()
        with sc3:
            if ws.permissions(task).can_delete and st.button("🗑️ Delete task", key=f"del_task_{task.id}"):
                _run(lambda: ws.delete_task(task.id), "Task deleted")
                st.rerun()

# ----- Handoff -----
st.subheader("Handoff")
open_items = [(t.id, None, t.title) for t in tasks if not t.is_finished]
for t in tasks:
    open_items.extend((s.id, t.id, f"{t.title} › {s.title}") for s in t.sub_tasks if not s.is_finished)

if not open_items:
    st.info("Everything is finished. Nothing to hand off.")
else:
    with st.form("handoff_form", clear_on_submit=True):
        choice = st.selectbox("Item", options=range(len(open_items)), format_func=lambda i: open_items[i][2])
        comment = st.text_area("Handoff comment")
        link = st.text_input("Output link")
        if st.form_submit_button("Hand off ✔"):
            item_id, parent_id, _ = open_items[choice]
            stamp = _run(
                lambda: ws.handoff(item_id, parent_id=parent_id, comment=comment or None, output_link=link or None),
                "Handed off",
            )
            if stamp:
                st.rerun()

# ----- Projects -----
if ws.role == MANAGER:
    with st.expander("Projects"):
        for p in projects:
            pc1, pc2 = st.columns([4, 1])
            pc1.write(p.name)
            if pc2.button("Delete", key=f"del_proj_{p.id}"):
                _run(lambda: ws.delete_project(p.id), f"Project {p.name} deleted")
                st.rerun()
        with st.form("new_project", clear_on_submit=True):
            name = st.text_input("New project name")
            if st.form_submit_button("Add project"):
                try:
                    _run(lambda: ws.add_project(name), f"Project {name} added")
                except ValueError as e:
                    st.warning(str(e))
                st.rerun()
