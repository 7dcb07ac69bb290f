"""Admin API client for jobs, chapters, books and workflow logs."""

from typing import Optional

import httpx

from ..config import ServicesConfig
from .tools import build_http_client


class PersistenceClient:
    def __init__(self, config: ServicesConfig, client: httpx.Client | None = None):
        self._client = client or build_http_client(
            config.persistence_url, config.timeout_seconds, config.api_token
        )

    def _send(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        response = self._client.request(method, path, json=payload)
        response.raise_for_status()
        return response.json() if response.content else {}

    def create_job(self, record: dict) -> dict:
        return self._send("POST", "/jobs", record)

    def get_job(self, job_id: str) -> Optional[dict]:
        response = self._client.get(f"/jobs/{job_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def update_job(self, job_id: str, fields: dict) -> dict:
        return self._send("PATCH", f"/jobs/{job_id}", fields)

    def create_chapter(self, record: dict) -> dict:
        return self._send("POST", "/chapters", record)

    def create_log(self, record: dict) -> dict:
        return self._send("POST", "/logs", record)

    def create_book(self, record: dict) -> dict:
        return self._send("POST", "/books", record)

    def close(self) -> None:
        self._client.close()
