from fastapi import Request

from ..boundary import Boundary


def get_boundary(request: Request) -> Boundary:
    return request.app.state.boundary
