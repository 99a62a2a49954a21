from ethview.ports.rpc_port import RpcPort
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

Responder = Union[Any, Callable[[List[Any]], Any]]


class StaticRpcAdapter(RpcPort):
    def __init__(self, responses: Optional[Dict[str, Responder]] = None):
        self._responses = dict(responses or {})
        self.calls: List[Tuple[str, List[Any]]] = []

    def call(self, method, params=None):
        params = list(params or [])
        self.calls.append((method, params))
        res = self._responses.get(method)
        if callable(res):
            return res(params)
        return res
