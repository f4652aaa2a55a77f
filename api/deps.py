"""Request-scoped access to the ClockService built by create_app()."""

from fastapi import Request

from shopclock.service import ClockService


def get_service(request: Request) -> ClockService:
    return request.app.state.service
