"""Application interfaces (ports)."""

from datalayer.application.interfaces.datasources import IUserDatasource

__all__ = ["IUserDatasource"]
