"""Repository layer for the candidate engine.

Workspace-scoped queries and state transitions, one module per aggregate:
- candidates: get_by_id, get_by_email, insert_if_absent, status_counts
- enrichment: create_tasks, select_due, claim, mark_*, recover_stuck
- email_queue: enqueue, select_due, claim, mark_*, recover_stuck
- campaigns: sends, follow-up steps, counters, record_send_event
- suppressions: add_suppression, is_suppressed
- accounts: get_account, touch_last_used
- usage: get_record, increment
"""
