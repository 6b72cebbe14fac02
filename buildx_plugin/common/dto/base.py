from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, SecretStr


class FrozenDTO(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    def evolve(self, **changes: Any) -> "FrozenDTO":
        return self.model_copy(update=changes)

    def model_dump_redacted(self) -> Dict[str, Any]:
        data = self.model_dump()
        return self._redact(data)

    def _redact(self, obj: Any) -> Any:
        if isinstance(obj, SecretStr):
            return "********" if obj.get_secret_value() else ""
        elif isinstance(obj, dict):
            return {k: self._redact(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._redact(item) for item in obj]
        return obj


def secret_value(secret: Optional[SecretStr]) -> str:
    if secret is None:
        return ""
    return secret.get_secret_value()
