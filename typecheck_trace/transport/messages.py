"""
Message payloads exchanged over the transport, discriminated by their ``message`` field.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from ..core.errors import MessageValidationError


class MessageModel(BaseModel):
    """Base model for payloads; camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TraceStart(MessageModel):
    message: Literal['traceStart'] = 'traceStart'
    project_path: str
    trace_dir: str


class TraceStop(MessageModel):
    message: Literal['traceStop'] = 'traceStop'


class FilterTree(MessageModel):
    message: Literal['filterTree'] = 'filterTree'
    starts_with: str = ''
    source_file_name: str = ''
    position: Union[int, Literal['']] = 0


class ShowTree(MessageModel):
    message: Literal['showTree'] = 'showTree'
    step: Literal['start', 'add', 'done']
    nodes: List[Dict[str, Any]] = Field(default_factory=list)


class ChildrenById(MessageModel):
    message: Literal['childrenById'] = 'childrenById'
    id: int
    children: Optional[List[Dict[str, Any]]] = None


class TypesById(MessageModel):
    message: Literal['typesById'] = 'typesById'
    id: int
    types: Optional[List[Dict[str, Any]]] = None


class TypesByTypeId(MessageModel):
    message: Literal['typesByTypeId'] = 'typesByTypeId'
    id: int
    types: Optional[List[Dict[str, Any]]] = None


class FileStatModel(MessageModel):
    dur: float
    pos: int
    end: int
    types: int
    total_types: int


class FileStats(MessageModel):
    message: Literal['fileStats'] = 'fileStats'
    file_name: str
    stats: Optional[List[FileStatModel]] = None


Message = Annotated[
    Union[
        TraceStart,
        TraceStop,
        FilterTree,
        ShowTree,
        ChildrenById,
        TypesById,
        TypesByTypeId,
        FileStats,
    ],
    Field(discriminator='message'),
]

_message_adapter = TypeAdapter(Message)


def parse_message(payload: Any) -> MessageModel:
    """
    Validate a payload and return the message model its discriminant names.

    Raises:
        MessageValidationError: If the discriminant is unknown or a field is invalid
    """
    try:
        return _message_adapter.validate_python(payload)
    except ValidationError as e:
        name = payload.get('message') if isinstance(payload, dict) else None
        raise MessageValidationError(f"invalid '{name}' message: {e.errors()[0]['msg']}") from e


def message_type(payload: Dict[str, Any]) -> Optional[str]:
    value = payload.get('message')
    return value if isinstance(value, str) else None
