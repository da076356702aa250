"""Application layer: handle interfaces, DTOs, and the document/session services.

Depends only on domain and the handle protocols; infrastructure implements
the handles.
"""
