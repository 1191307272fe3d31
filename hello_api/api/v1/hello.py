from datetime import datetime, timezone

from fastapi import APIRouter

from hello_api.schemas.hello import Greeting, GreetingRequest, ServiceStatus

router = APIRouter()


@router.get("/api/hello")
async def hello() -> Greeting:
    return Greeting(message="Hello, Backend Developer!")


@router.get("/api/hello/{name}")
async def hello_name(name: str) -> Greeting:
    return Greeting(message=f"Hello, {name}! Welcome to the User API!")


@router.post("/api/hello")
async def hello_post(body: GreetingRequest) -> Greeting:
    """Greet the caller by the name in the body, or anonymously."""
    name = body.name or "Anonymous"
    return Greeting(message=f"Hello, {name}! You made a POST request!")


@router.get("/api/status")
async def service_status() -> ServiceStatus:
    """Liveness check. Not recorded by the monitoring service."""
    return ServiceStatus(
        status="API is running!",
        timestamp=datetime.now(timezone.utc),
        developer="mohamf",
        day=29,
        message="Month 1 Complete - Building Real APIs Now!",
    )
