import json
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, ValidationError

from forcesource.core.exceptions import ConfigurationError


class ForceSourceModel(BaseModel):
    # Base class for forcesource's Pydantic models

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def parse_from_json(cls, source: Union[str, Path]):
        "Parse from a path to a JSON file"
        with open(source, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {source}: {e}") from e
        return cls.parse_data(data, str(source))

    @classmethod
    def parse_data(cls, data: Union[dict, list], path: str = None):
        "Parse a structured dict into Model objects"
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            where = f" in {path}" if path else ""
            raise ConfigurationError(f"Invalid configuration{where}:\n{e}") from e

    def to_json_data(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def write_json(self, path: Union[str, Path]):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_json_data(), f, indent=4)
