from fastapi import Request

from app.services.user_service import UserService


def get_remote_api(request: Request):
    return request.app.state.remote


def get_user_service(request: Request) -> UserService:
    return UserService(request.app.state.remote)


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None
