"""Application interfaces (ports) implemented by infrastructure."""

from fireaccess.application.interfaces.handles import IAuthHandle, IStoreHandle

__all__ = ["IAuthHandle", "IStoreHandle"]
