"""Syllabus and compliance lookups."""

from ..config import ServicesConfig
from ..errors import MalformedResponse
from .tools import ToolCaller, build_http_client


class StandardsClient:
    def __init__(self, config: ServicesConfig, caller: ToolCaller | None = None):
        self._caller = caller or ToolCaller(
            build_http_client(config.standards_url, config.timeout_seconds, config.api_token)
        )

    def get_syllabus_section(self, domain_id: str) -> dict:
        data = self._caller.call(
            "get_syllabus_section", {"domain_id": domain_id, "output_format": "json"}
        )
        if isinstance(data, dict) and isinstance(data.get("section"), dict):
            section = dict(data["section"])
            if data.get("learning_objectives") and "learning_objectives" not in section:
                section["learning_objectives"] = data["learning_objectives"]
            return section
        if not isinstance(data, dict):
            raise MalformedResponse(f"Unexpected syllabus section payload for {domain_id}", raw=data)
        return data

    def validate_compliance(self, content: str) -> dict:
        data = self._caller.call("validate_iso_compliance", {"content": content})
        if not isinstance(data, dict):
            raise MalformedResponse("Unexpected compliance payload", raw=data)
        return {
            "status": data.get("status", "unknown"),
            "findings": data.get("findings", []),
            "score": data.get("score"),
        }

    def close(self) -> None:
        self._caller.close()
