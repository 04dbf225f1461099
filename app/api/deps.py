from fastapi.requests import HTTPConnection

from app.services.matching_system import MatchingSystem


def get_matching_system(connection: HTTPConnection) -> MatchingSystem:
    return connection.app.state.matching_system
