from .env_cmds import register as register_env

__all__ = [
    "register_env",
]
