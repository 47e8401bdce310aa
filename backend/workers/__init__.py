"""
Background refresh workers.

Workers:
- orchestrator: Bulk refresh of every catalog country as one durable, resumable job
- scheduler: Weekly bulk trigger plus periodic refresh of looked-up countries
"""
