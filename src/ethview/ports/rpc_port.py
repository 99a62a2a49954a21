from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class RpcPort(ABC):

    @abstractmethod
    def call(self, method: str, params: Optional[List[Any]] = None) -> Optional[Any]:
        """Returns the JSON-RPC result, or None when the call failed."""
        raise NotImplementedError
