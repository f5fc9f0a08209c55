"""Persistence Gateway: table-shaped access to the managed backend."""

from .ports import GatewayProtocol, TABLES
from .memory import InMemoryGateway

__all__ = ["GatewayProtocol", "TABLES", "InMemoryGateway"]
