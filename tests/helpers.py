import json
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

import httpx

Reply = Union[str, Dict[str, Any], Exception, Callable[[httpx.Request], str]]


def envelope(data: Any = None, code: str = "SUCCESS", msg: str = "success") -> str:
    body: Dict[str, Any] = {"code": code, "msg": msg}
    if data is not None:
        body["data"] = data
    return json.dumps(body)


class FakeController:
    """
    Scripted stand-in for a controller.

    Replies are queued per (method, path) and served in order; the last
    reply for a route is repeated once the queue runs dry. A reply can be a
    body, a dict sent as JSON, an exception to raise, or a callable taking
    the request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Deque[Reply]] = defaultdict(deque)
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Reply) -> None:
        self.routes[(method, path)].extend(replies)

    def calls(self, method: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and (path is None or request.url.path == path)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text=envelope(code="CODE_NOT_FOUND", msg="no route"))

        reply = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(request)
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return httpx.Response(200, text=reply)
