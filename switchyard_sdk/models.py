from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Tool(ApiModel):
    server_name: str
    tool_name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    similarity: float

class GroupedTool(ApiModel):
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    similarity: float
    server_name: str

class ServerGroup(ApiModel):
    server_name: str
    tools: List[GroupedTool]
    max_similarity: float
    avg_similarity: float

class SearchMetadata(ApiModel):
    query: str
    threshold: float
    total_results: int
    server_count: int
    guideline: str
    next_steps: str

class SearchResult(ApiModel):
    tools: List[Tool]
    servers: List[ServerGroup]
    metadata: SearchMetadata

class CallResult(ApiModel):
    content: List[Dict[str, Any]] = Field(default_factory=list)
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    is_error: bool = False
    error_type: Optional[str] = None

class ServerInfo(ApiModel):
    name: str
    transport: str
    tool_count: int
