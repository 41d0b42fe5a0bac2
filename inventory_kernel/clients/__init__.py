"""Clients for remote procedures the kernel can delegate actions to."""

from inventory_kernel.clients.edge_functions import EdgeFunctionClient, RemoteProcedures

__all__ = ["EdgeFunctionClient", "RemoteProcedures"]
