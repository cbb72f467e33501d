"""Endpoint descriptor models.

The Swagger parser turns every operation of the API document into one of
these frozen models; the request builder consumes them.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

LOCATIONS = ("path", "query", "header", "body")


class Param(BaseModel):
    """A single operation parameter and where it travels on the wire."""

    model_config = ConfigDict(frozen=True)

    name: str  # key used in call parameters, e.g. apiVersion
    location: str  # path / query / header / body
    required: bool
    wire_name: str = ""  # key on the wire, e.g. api-version
    param_type: str = "string"
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_wire_name(cls, data):
        if isinstance(data, dict) and not data.get("wire_name"):
            data = {**data, "wire_name": data.get("name", "")}
        return data

    @model_validator(mode="after")
    def _check_location(self) -> "Param":
        if self.location not in LOCATIONS:
            raise ValueError(f"Unsupported parameter location {self.location!r} for {self.name!r}")
        return self


class Endpoint(BaseModel):
    """Static metadata for one REST operation."""

    model_config = ConfigDict(frozen=True)

    operation_id: str
    method: str  # GET / POST / PUT / DELETE / PATCH
    path: str  # /{tenantId}/users/{userId}
    summary: str = ""
    parameters: tuple[Param, ...] = ()
    tags: tuple[str, ...] = Field(default_factory=tuple)

    def required_params(self) -> list[Param]:
        return [p for p in self.parameters if p.required]

    def param(self, name: str) -> Param | None:
        for p in self.parameters:
            if p.name == name:
                return p
        return None
