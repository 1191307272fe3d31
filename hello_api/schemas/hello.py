from datetime import datetime

from pydantic import BaseModel


class Greeting(BaseModel):
    message: str


class GreetingRequest(BaseModel):
    name: str | None = None


class ServiceStatus(BaseModel):
    status: str
    timestamp: datetime
    developer: str
    day: int
    message: str
