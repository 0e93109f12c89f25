"""Core engine services.

- matching / merge / dedup: candidate ingestion without duplicates
- enrichment_planner / enrichment_queue: progressive field enrichment
- email_queue / follow_ups: outreach delivery and follow-up sequencing
- usage / retry: provider budgets and the shared retry state machine
"""
