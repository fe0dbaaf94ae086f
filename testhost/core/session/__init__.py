"""Host Session Package.

Owns the launched host and its call channel: value types, the session
resource, the session manager and two host implementations (a child
process and a same-process stand-in).

Example usage:
    from testhost.core.session import SessionManager, ProcessHostLauncher

    manager = SessionManager(ProcessHostLauncher())
    manager.connect(key, launch_timeout=30)
    alive = manager.is_alive()
    manager.close()
"""

from testhost.core.session.host import (
    CancellationToken,
    HostHandle,
    HostLauncher,
    HostSession,
    RemoteProxy,
)
from testhost.core.session.in_process import (
    InProcessHandle,
    InProcessLauncher,
    LocalTestee,
)
from testhost.core.session.manager import SessionManager
from testhost.core.session.process_host import (
    ConnectionProxy,
    ProcessHostHandle,
    ProcessHostLauncher,
    RemoteCallError,
)
from testhost.core.session.types import (
    CallResult,
    FailureKind,
    HostVersion,
    RetryPolicy,
    SessionKey,
)

__all__ = [
    # Session resource and manager
    "HostSession",
    "SessionManager",
    "CancellationToken",
    # Collaborator interfaces
    "HostHandle",
    "HostLauncher",
    "RemoteProxy",
    # Implementations
    "InProcessHandle",
    "InProcessLauncher",
    "LocalTestee",
    "ConnectionProxy",
    "ProcessHostHandle",
    "ProcessHostLauncher",
    "RemoteCallError",
    # Types
    "CallResult",
    "FailureKind",
    "HostVersion",
    "RetryPolicy",
    "SessionKey",
]
