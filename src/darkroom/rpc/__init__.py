"""Remote-procedure transport."""

from darkroom.rpc.client import RpcClient, RpcError, RpcResult, RpcTransportError

__all__ = ["RpcClient", "RpcError", "RpcResult", "RpcTransportError"]
