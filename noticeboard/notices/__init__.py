"""Notice lifecycle package.

Dispatch creates a notice and fans out one Pending status row per
recipient, the status tracker moves each row forward
(Pending → Noted → Completed), projections build the read views, and
closure archives completion counts before deleting the notice.
"""
