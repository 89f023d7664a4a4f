import logging

import httpx

from commentboard.errors import StoreFault
from commentboard.proxy import AUTH_HEADER

logger = logging.getLogger(__name__)


class ProxyClient:
    """Talks to the comment store proxy on behalf of the pages."""

    def __init__(self, url: str, secret: str, client: httpx.Client | None = None, timeout: float = 5.0):
        self.url = url
        self.secret = secret
        self.client = client or httpx.Client(timeout=timeout)

    def _request(self, method: str, payload=None):
        headers = {"Content-Type": "application/json", AUTH_HEADER: self.secret}
        try:
            resp = self.client.request(method, self.url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise StoreFault(f"Proxy unreachable: {e}") from e
        if resp.status_code >= 400:
            try:
                data = resp.json()
            except ValueError:
                data = None
            message = data.get("error") if isinstance(data, dict) else None
            raise StoreFault(message or f"Proxy answered {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise StoreFault("Proxy answered with invalid JSON") from e

    def list_comments(self):
        items = self._request("GET")
        if not isinstance(items, list):
            raise StoreFault("Proxy did not answer with a list")
        return items

    def create_comment(self, name: str, comment: str):
        return self._request("PUT", {"name": name, "comment": comment})

    def delete_comment(self, timestamp: str):
        return self._request("DELETE", {"timestamp": timestamp})

    def close(self):
        self.client.close()


def fetch_public_comments(url: str, client: httpx.Client | None = None, timeout: float = 5.0):
    """Read the comment list straight from its public URL.

    Any non-success status, transport error or unparsable body gives [].
    """
    own = client is None
    client = client or httpx.Client(timeout=timeout)
    try:
        resp = client.get(url)
        if resp.status_code != 200:
            logger.warning("Public read of %s answered %s", url, resp.status_code)
            return []
        items = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Public read of %s failed: %s", url, e)
        return []
    finally:
        if own:
            client.close()
    if not isinstance(items, list):
        logger.warning("Public read of %s is not a list", url)
        return []
    return [item for item in items if item]
