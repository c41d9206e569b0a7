from .auth import LoginRequest, TokenResponse, Actor, ActorRead

__all__ = ["LoginRequest", "TokenResponse", "Actor", "ActorRead"]
