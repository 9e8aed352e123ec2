"""
Data Model for Search and Dispatch

Field names are snake_case in Python and camelCase on the wire.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ToolDescriptor(WireModel):
    """A tool as stored in the similarity index."""
    model_config = ConfigDict(frozen=True)

    server_name: str
    tool_name: str
    title: Optional[str] = None
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    vector: Optional[List[float]] = Field(default=None, exclude=True)


class SearchCandidate(WireModel):
    server_name: str
    tool_name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    similarity: float


class GroupedTool(WireModel):
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    similarity: float
    server_name: str


class ServerGroup(WireModel):
    server_name: str
    tools: List[GroupedTool]
    max_similarity: float
    avg_similarity: float


class SearchMetadata(WireModel):
    query: str
    threshold: float
    total_results: int
    server_count: int
    guideline: str
    next_steps: str


class SearchResponse(WireModel):
    tools: List[SearchCandidate]
    servers: List[ServerGroup]
    metadata: SearchMetadata


class InvocationRequest(WireModel):
    tool_name: str
    arguments: Dict[str, JsonValue] = Field(default_factory=dict)
    target_server_hint: Optional[str] = None
    session_id: str
    timeout: Optional[float] = None


class InvocationResult(WireModel):
    content: List[Dict[str, Any]] = Field(default_factory=list)
    is_error: bool = False
    error_type: Optional[str] = None

    @classmethod
    def failure(cls, message: str, error_type: str) -> "InvocationResult":
        return cls(content=[{"type": "text", "text": message}], is_error=True, error_type=error_type)


@dataclass(frozen=True)
class CallContext:
    """Per-call context handed to the router and adapters."""
    session_id: str
    target_server: Optional[str] = None
    timeout: Optional[float] = None
