"""
plughost RPC - Line-framed JSON-RPC peer used by legacy process plugins.
"""

from plughost.rpc.peer import Handler, RemoteError, RpcError, RpcPeer, RpcTimeoutError

__all__ = ["Handler", "RemoteError", "RpcError", "RpcPeer", "RpcTimeoutError"]
