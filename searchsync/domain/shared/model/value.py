from pydantic import BaseModel, ConfigDict


class ValueObject(BaseModel):
    """Immutable value object.

    Arbitrary types are allowed because index events carry host objects
    (ORM instances, domain classes) that pydantic cannot validate.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
