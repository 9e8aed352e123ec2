import aiohttp
from typing import List, Dict, Any, Optional, Iterable
from .models import SearchResult, CallResult, ServerInfo
from .errors import (
    SwitchyardAPIError,
    SwitchyardConnectionError,
    SwitchyardFeatureDisabledError,
    SwitchyardTimeoutError,
)

class SwitchyardClient:
    def __init__(self, base_url: str = "http://localhost:8000", session_id: Optional[str] = None, timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _headers(self) -> Dict[str, str]:
        return {"x-session-id": self.session_id} if self.session_id else {}

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            body = {"message": await response.text()}

        if response.ok and body.get("success", True):
            return body.get("data", body)

        status = response.status
        detail = body.get("message") or response.reason
        if body.get("error"):
            detail = f"{detail}: {body['error']}"

        if status == 503:
            raise SwitchyardFeatureDisabledError(detail, status)
        raise SwitchyardAPIError(detail, status)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout, headers=self._headers()) as session:
                async with session.request(method, f"{self.base_url}{path}", **kwargs) as resp:
                    return await self._handle_response(resp)
        except TimeoutError as e:
            raise SwitchyardTimeoutError(f"Request to {path} timed out") from e
        except aiohttp.ClientError as e:
            raise SwitchyardConnectionError(f"Failed to connect to Switchyard: {str(e)}")

    async def search(self, query: str, limit: int = 10, threshold: Optional[float] = None) -> SearchResult:
        """Search for tools. Leave threshold unset to let the server pick one from the query."""
        payload: Dict[str, Any] = {"query": query, "limit": limit}
        if threshold is not None:
            payload["threshold"] = threshold
        data = await self._request("POST", "/tools/search", json=payload)
        return SearchResult.model_validate(data)

    async def list_servers(self) -> List[ServerInfo]:
        """List servers currently available for dispatch."""
        data = await self._request("GET", "/servers")
        return [ServerInfo.model_validate(s) for s in data.get("servers", [])]

    async def list_tools(self, server_name: str) -> List[Dict[str, Any]]:
        """List all indexed tools for a specific server."""
        data = await self._request("GET", f"/servers/{server_name}/tools")
        return data.get("tools", [])

    async def call(self, tool_name: str, arguments: Dict[str, Any] = None, server: Optional[str] = None, timeout: Optional[float] = None) -> CallResult:
        """Execute a tool. Tool failures come back as a CallResult with is_error set."""
        payload: Dict[str, Any] = {"toolName": tool_name, "arguments": arguments or {}}
        if timeout is not None:
            payload["timeout"] = timeout
        path = f"/tools/call/{server}" if server else "/tools/call"
        data = await self._request("POST", path, json=payload)
        return CallResult.model_validate(data)


def servers_from_search(result: SearchResult, all_servers: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Pick the caller's server records that appear in a search result,
    in the order the search ranked them. Unknown server names are dropped.
    """
    by_name = {server["name"]: server for server in all_servers}
    return [by_name[group.server_name] for group in result.servers if group.server_name in by_name]
