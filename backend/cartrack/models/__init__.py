from .catalog import Location, Cartridge
from .operations import Operation
from .auth import User, SessionToken

__all__ = [
    'Location', 'Cartridge',
    'Operation',
    'User', 'SessionToken',
]
