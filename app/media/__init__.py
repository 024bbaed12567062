"""
Media app for file attachments.

This app provides:
- Upload validation (extension and MIME type allow-list, size ceiling)
- Storage of uploads under MEDIA_ROOT with generated names
- The upload endpoint returning the descriptor messages carry
"""
