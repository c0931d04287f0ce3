from ava.protocols.policies import FiringPolicy
from ava.protocols.runtime import Clock, RandomSource
from ava.protocols.sessions import SessionStore

__all__ = ["Clock", "FiringPolicy", "RandomSource", "SessionStore"]
