"""
HTTP client for a running registry service.

    client = RegistryClient("http://localhost:8000", key_pair=generate_key_pair())
    client.register("John Doe")
    client.lookup(client.principal)

With a key pair, calls are signed with the account key. Without one, the
caller is sent in the X-Principal header, which the service accepts only in
header caller-auth mode.
"""

import json
from typing import Any, Dict, List, Optional

import requests

from .errors import ERRORS_BY_CODE, RegistryError
from .principals import normalize_principal
from .records import IdentityRecord, JournalEntry
from .signing import KeyPair, sign_request
from .util import now_epoch


def error_from_response(status_code: int, body: Any) -> RegistryError:
    """Rebuild the registry error carried by a service error response."""
    if not isinstance(body, dict):
        body = {}
    code = body.get("error", "")
    message = body.get("message") or f"HTTP {status_code}"
    details = body.get("details") or {}
    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        err = RegistryError(message, **details)
        err.code = code or "HTTP_ERROR"
        err.http_status = status_code
        return err
    err = cls.from_wire(message, details)
    err.message = message
    return err


class RegistryClient:
    def __init__(
        self,
        base_url: str,
        key_pair: Optional[KeyPair] = None,
        principal: Optional[str] = None,
        session: Optional[Any] = None,
        timeout: float = 5.0
    ):
        self.base_url = base_url.rstrip("/")
        self.key_pair = key_pair
        if key_pair is not None:
            self.principal = key_pair.principal
        else:
            self.principal = normalize_principal(principal) if principal else None
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, method: str, path: str, body: Optional[Dict[str, Any]]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.key_pair is not None:
            ts = now_epoch()
            headers["X-Public-Key"] = self.key_pair.verify_key.hex()
            headers["X-Timestamp"] = str(ts)
            headers["X-Signature"] = sign_request(self.key_pair.signing_key, method, path, body, ts)
        elif self.principal:
            headers["X-Principal"] = self.principal
        return headers

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None, signed: bool = False) -> Any:
        headers = self._headers(method, path, body) if signed else {}
        url = f"{self.base_url}{path}"
        if method == "GET":
            res = self.session.get(url, headers=headers, timeout=self.timeout)
        else:
            res = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        try:
            payload = res.json()
        except (ValueError, json.JSONDecodeError):
            payload = None
        if res.status_code >= 400:
            raise error_from_response(res.status_code, payload)
        return payload

    def register(self, name: str) -> IdentityRecord:
        data = self._request("POST", "/v1/identities", {"name": name}, signed=True)
        return IdentityRecord.from_dict(data)

    def attest(self, target: str) -> IdentityRecord:
        target = normalize_principal(target)
        data = self._request("POST", f"/v1/identities/{target}/attestations", None, signed=True)
        return IdentityRecord.from_dict(data)

    def lookup(self, target: str) -> IdentityRecord:
        target = normalize_principal(target)
        return IdentityRecord.from_dict(self._request("GET", f"/v1/identities/{target}"))

    def history(self, target: str) -> List[JournalEntry]:
        target = normalize_principal(target)
        data = self._request("GET", f"/v1/identities/{target}/attestations")
        return [JournalEntry(**e) for e in data]

    def info(self) -> Dict[str, Any]:
        return self._request("GET", "/v1/registry")
