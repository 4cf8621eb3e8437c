"""Agent roster from the platform config file (openclaw.json)."""
import json
from typing import Any, Dict, List

from pydantic import BaseModel


class AgentInfo(BaseModel):
    id: str
    name: str = ""
    model: str = "unknown"
    fallbacks: List[str] = []
    subagents: List[str] = []
    isDefault: bool = False


def load_platform_config(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("platform config is not an object")
    return data


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def agents_from_config(config: Dict[str, Any]) -> List[AgentInfo]:
    agents = _dict(config.get("agents")).get("list") or []
    result = []
    for a in agents if isinstance(agents, list) else []:
        if not isinstance(a, dict) or not a.get("id"):
            continue
        model = _dict(a.get("model"))
        subs = _dict(a.get("subagents"))
        result.append(AgentInfo(
            id=str(a["id"]),
            name=str(a.get("name") or ""),
            model=str(model.get("primary") or "unknown"),
            fallbacks=_str_list(model.get("fallbacks")),
            subagents=_str_list(subs.get("allowAgents")),
            isDefault=bool(a.get("default", False)),
        ))
    return result


def load_agents(config_path: str) -> List[AgentInfo]:
    return agents_from_config(load_platform_config(config_path))


def gateway_token(config: Dict[str, Any]) -> str:
    token = _dict(_dict(config.get("gateway")).get("auth")).get("token")
    return token if isinstance(token, str) else ""
