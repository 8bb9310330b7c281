from typing import Annotated, Any

from pydantic import BeforeValidator


def _id_to_str(value: Any) -> Any:
    return str(value) if value is not None else None


# ObjectId references rendered as plain strings in responses
IdStr = Annotated[str, BeforeValidator(_id_to_str)]
