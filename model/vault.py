from pydantic import BaseModel


class VaultSecretResponse(BaseModel):
    data: dict[str, str]
