from pydantic import BaseModel

# Schema para los datos contenidos dentro del JWT (payload)
class TokenPayload(BaseModel):
    sub: int
