"""Blob storage for attachments and replies.

Contract::

    save(content, original_name, mime_type) -> reference
    delete(reference) -> None   # best effort, never raises
"""
