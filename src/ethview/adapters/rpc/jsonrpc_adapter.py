import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ethview.config.settings import RPC_TIMEOUT_SEC, RPC_VERIFY_TLS
from ethview.core.errors import ConfigurationError, DataSourceError
from ethview.ports.rpc_port import RpcPort

logger = logging.getLogger(__name__)


class JsonRpcAdapter(RpcPort):
    """
    JSON-RPC 2.0 over HTTP POST. Used for both the node and the price service.

    Every call is attempted once; transport errors and non-JSON answers
    yield None.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout_sec: int = RPC_TIMEOUT_SEC,
        verify_tls: bool = RPC_VERIFY_TLS,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not url:
            raise ConfigurationError("JSON-RPC endpoint URL is not configured")
        self._url = url
        self._timeout = timeout_sec
        self._verify = verify_tls
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                self._url,
                json=payload,
                timeout=self._timeout,
                verify=self._verify,
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise DataSourceError(f"{payload['method']} failed: {e}") from e

        if not isinstance(data, dict):
            raise DataSourceError(f"Invalid JSON-RPC response: {data}")
        return data

    # ---------- port methods ----------

    def call(self, method: str, params: Optional[List[Any]] = None) -> Optional[Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": int(time.time()),
            "method": method,
            "params": list(params or []),
        }
        try:
            data = self._post(payload)
        except DataSourceError as e:
            logger.warning("JSON-RPC call to %s: %s", self._url, e)
            return None

        if data.get("error"):
            logger.warning("JSON-RPC %s returned error: %s", method, data["error"])
        return data.get("result")
