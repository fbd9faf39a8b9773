"""
Tasks module.

Per-user task CRUD under /api/tasks: completion toggling, subtasks, tags,
category and overdue views, filtered/sorted/paginated listing with stats.
"""
