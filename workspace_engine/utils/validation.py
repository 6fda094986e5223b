from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from workspace_engine.utils.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{field}: {message}" if field else message)
    return "; ".join(parts)

def validate_payload(model_cls: Type[ModelT], data: Union[ModelT, Mapping[str, Any]]) -> ModelT:
    """Validate a request payload locally, before any network call.

    Model instances are re-validated from the fields the caller actually set,
    so `model_fields_set` survives the round trip.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Task data validation error: {_describe(e)}")
