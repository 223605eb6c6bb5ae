"""Control protocol spoken between CLI invocations and a session controller.

Every message is a JSON object tagged by ``type``. The variant sets are
closed: decoding rejects unknown tags, missing or extra fields and mistyped
values instead of falling back to a default message.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

MAX_DURATION_LIMIT = 2**32 - 1


class DecodeError(ValueError):
    pass


class _Message(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, strict=True)


class Ping(_Message):
    type: Literal["Ping"] = "Ping"


class StartRecording(_Message):
    type: Literal["StartRecording"] = "StartRecording"
    max_duration: int = Field(ge=0, le=MAX_DURATION_LIMIT)


class StopRecording(_Message):
    type: Literal["StopRecording"] = "StopRecording"


class Shutdown(_Message):
    type: Literal["Shutdown"] = "Shutdown"


class Ok(_Message):
    type: Literal["Ok"] = "Ok"
    message: str


class Recording(_Message):
    type: Literal["Recording"] = "Recording"


class Success(_Message):
    type: Literal["Success"] = "Success"
    text: str


class Error(_Message):
    type: Literal["Error"] = "Error"
    message: str


ControlRequest = Annotated[
    Union[Ping, StartRecording, StopRecording, Shutdown],
    Field(discriminator="type"),
]
ControlResponse = Annotated[
    Union[Ok, Recording, Success, Error],
    Field(discriminator="type"),
]

_REQUEST_ADAPTER: TypeAdapter[ControlRequest] = TypeAdapter(ControlRequest)
_RESPONSE_ADAPTER: TypeAdapter[ControlResponse] = TypeAdapter(ControlResponse)


def encode_request(request: ControlRequest) -> str:
    return request.model_dump_json()


def encode_response(response: ControlResponse) -> str:
    return response.model_dump_json()


def decode_request(raw: str | bytes) -> ControlRequest:
    try:
        return _REQUEST_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"Invalid request: {_summarize(exc)}") from exc


def decode_response(raw: str | bytes) -> ControlResponse:
    try:
        return _RESPONSE_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"Invalid response: {_summarize(exc)}") from exc


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)
