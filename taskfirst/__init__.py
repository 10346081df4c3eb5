"""TaskFirst workspace.

Task/subtask tracking with a spreadsheet editor, an archive of finished work
and an analytics dashboard:
- models / seed: the task shape and the demo registry
- metrics: pure aggregation behind every dashboard number
- backends: mock, SQL, Supabase and Firebase stores behind one interface
- workspace: editing rules (roles, handoff, projects)
- ai / server: smart report and the FastMCP proxy
"""
